"""
Procurement approval kernel.

Domain types, persistence, selectors and the flush-only services that drive
a purchase request through its multi-level approval chain.
"""

__version__ = "0.1.0"
