"""
transaction.py

Stored ledger rows for each client. This table is the transaction source the
gains engine reads: it always hands over a client's FULL history, because
cost basis of a later disposal depends on every earlier acquisition.

Nothing derived (lots, disposal events, gains) is persisted; those are
recomputed from these rows on every request.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String

from costbasis.database import Base, DecimalText, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerTransaction(Base):
    """
    One acquisition/disposal/other event for one asset, as imported from an
    exchange export or entered by staff.
    """

    __tablename__ = "ledger_transactions"

    id = Column(
        String,
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        doc="Source transaction id; becomes the lot id for acquisitions."
    )
    client_id = Column(String, nullable=False, index=True)

    timestamp = Column(
        UTCDateTime,
        nullable=False,
        index=True,
        doc="When the transaction occurred (UTC)."
    )

    # One of TxType: BUY, SELL, DEPOSIT, WITHDRAWAL, TRANSFER, SWAP, STAKE,
    # UNSTAKE, REWARD, FEE, OTHER
    type = Column(String, nullable=False)

    asset = Column(String, nullable=False, doc="Asset symbol, e.g. 'BTC'.")
    amount = Column(DecimalText, nullable=False)
    price = Column(DecimalText, nullable=True, doc="Unit price in reporting currency.")
    fee = Column(DecimalText, nullable=True)
    exchange = Column(String, nullable=True)

    created_at = Column(UTCDateTime, default=_utcnow, nullable=False)

    def __repr__(self):
        return (
            f"<LedgerTransaction(id={self.id}, client={self.client_id}, type={self.type}, "
            f"asset={self.asset}, amount={self.amount}, timestamp={self.timestamp})>"
        )
