"""
costbasis/schemas/transaction.py

Pydantic v2 schemas for storing a client's ledger rows.

- TransactionCreate: input for POST /api/clients/{client_id}/transactions
- TransactionRead: output, includes client_id and created_at

Decimal fields are stored as Decimal directly; amount/price/fee may not be
negative. Timestamps are normalized to UTC.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from costbasis.schemas.gains import TxType, force_utc


class TransactionBase(BaseModel):
    timestamp: datetime
    type: TxType
    asset: str = Field(min_length=1, description="Asset symbol, e.g. 'BTC'.")
    amount: Decimal = Field(description="Quantity of the asset moved.")
    price: Optional[Decimal] = Field(default=None, description="Unit price at the time.")
    fee: Optional[Decimal] = None
    exchange: Optional[str] = None

    @field_validator("type", mode="before")
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("timestamp")
    def force_utc_timestamp(cls, v: datetime) -> datetime:
        """
        Ensures timestamps are UTC for consistent ordering.
        """
        return force_utc(v)

    @field_validator("amount", "price", "fee")
    def non_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("amount, price and fee cannot be negative.")
        return v


class TransactionCreate(TransactionBase):
    """
    'id' is optional; when omitted the store assigns a UUID.
    """
    id: Optional[str] = None


class TransactionRead(TransactionBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    created_at: Optional[datetime] = None
