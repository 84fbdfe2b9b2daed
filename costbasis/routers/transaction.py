"""
costbasis/routers/transaction.py

Router for a client's stored ledger rows. main.py mounts it at /api/clients.

These endpoints only store and list rows; the gains engine reads them through
services.transaction.load_transaction_inputs.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from costbasis.schemas.transaction import TransactionCreate, TransactionRead
from costbasis.services import transaction as tx_service
from costbasis.database import get_db

router = APIRouter(tags=["transactions"])


@router.get("/{client_id}/transactions", response_model=List[TransactionRead])
def list_transactions(client_id: str, db: Session = Depends(get_db)):
    """
    Full ledger for the client, oldest first.
    """
    return tx_service.get_client_transactions(db, client_id)


@router.post("/{client_id}/transactions", response_model=TransactionRead, status_code=201)
def create_transaction(client_id: str, tx: TransactionCreate, db: Session = Depends(get_db)):
    """
    Store one transaction. The asset symbol is upper-cased on the way in.
    """
    return tx_service.create_transaction_record(client_id, tx, db)


@router.delete("/{client_id}/transactions")
def delete_transactions(client_id: str, db: Session = Depends(get_db)):
    """
    Remove every stored row for the client.
    """
    count = tx_service.delete_client_transactions(client_id, db)
    return {"detail": f"Deleted {count} transactions", "deleted_count": count}
