# FILE: costbasis/services/transaction.py

"""
costbasis/services/transaction.py

Transaction source for the gains engine: stores and retrieves a client's
ledger rows and converts them to TransactionInput.

get_client_transactions() ALWAYS returns the client's full history in
chronological order. Reporting windows are applied by the engine, never here,
so that pre-window acquisitions still feed the cost basis of in-window
disposals.
"""

import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy.orm import Session

from costbasis.models.transaction import LedgerTransaction
from costbasis.schemas.gains import TransactionInput
from costbasis.schemas.transaction import TransactionCreate

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Retrieval
# ------------------------------------------------------------------------------
def get_client_transactions(db: Session, client_id: str) -> List[LedgerTransaction]:
    """
    Every stored row for the client, ascending by timestamp (ties by insert time).
    """
    return (
        db.query(LedgerTransaction)
        .filter(LedgerTransaction.client_id == client_id)
        .order_by(LedgerTransaction.timestamp.asc(), LedgerTransaction.created_at.asc())
        .all()
    )


def to_transaction_input(row: LedgerTransaction) -> TransactionInput:
    return TransactionInput(
        id=row.id,
        timestamp=row.timestamp,
        type=row.type,
        asset=row.asset,
        amount=str(row.amount),
        price=str(row.price) if row.price is not None else None,
        fee=str(row.fee) if row.fee is not None else None,
        exchange=row.exchange,
    )


def load_transaction_inputs(db: Session, client_id: str) -> List[TransactionInput]:
    """
    Full ledger for 'client_id' as engine input. Raises 404 when the client
    has no stored transactions.
    """
    rows = get_client_transactions(db, client_id)
    if not rows:
        raise HTTPException(status_code=404, detail=f"No transactions found for client {client_id}")
    logger.debug("Loaded %d transactions for client %s", len(rows), client_id)
    return [to_transaction_input(r) for r in rows]


# ------------------------------------------------------------------------------
# Writes
# ------------------------------------------------------------------------------
def create_transaction_record(client_id: str, tx: TransactionCreate, db: Session) -> LedgerTransaction:
    """
    Insert one ledger row. A duplicate id is rejected with 409.
    """
    if tx.id and db.query(LedgerTransaction).filter(LedgerTransaction.id == tx.id).first():
        raise HTTPException(status_code=409, detail=f"Transaction {tx.id} already exists")

    row = LedgerTransaction(
        client_id=client_id,
        timestamp=tx.timestamp,
        type=tx.type.value,
        asset=tx.asset.strip().upper(),
        amount=tx.amount,
        price=tx.price,
        fee=tx.fee,
        exchange=tx.exchange,
    )
    if tx.id:
        row.id = tx.id

    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(f"Stored transaction {row.id} ({row.type} {row.amount} {row.asset}) for client {client_id}")
    return row


def delete_client_transactions(client_id: str, db: Session) -> int:
    """
    Remove every stored row for the client. Returns how many were deleted.
    """
    count = (
        db.query(LedgerTransaction)
        .filter(LedgerTransaction.client_id == client_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Deleted {count} transactions for client {client_id}")
    return count
