"""
Module: procurement_kernel.db.types
Responsibility: Annotated column types shared by every model.
Architecture position: Kernel > DB.  May be imported by models/ and
    selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for amounts.  Money is Numeric(38, 9).
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Integer, Numeric, String

# BIGINT everywhere except SQLite, where only INTEGER PRIMARY KEY autoincrements.
IdType = BigInteger().with_variant(Integer(), "sqlite")

Money = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]
