"""
costbasis/services/classifier.py

Decides whether a transaction type adds to an asset's lot pool
(acquisition), draws from it (disposal), or neither.
"""

from typing import Optional, Union

from costbasis.constants import ACQUISITION_TYPES, DISPOSAL_TYPES
from costbasis.schemas.gains import TxType

ACQUISITION = "acquisition"
DISPOSAL = "disposal"


def _type_key(tx_type: Union[TxType, str]) -> str:
    if isinstance(tx_type, TxType):
        return tx_type.value
    return str(tx_type).strip().upper()


def is_acquisition(tx_type: Union[TxType, str]) -> bool:
    return _type_key(tx_type) in ACQUISITION_TYPES


def is_disposal(tx_type: Union[TxType, str]) -> bool:
    return _type_key(tx_type) in DISPOSAL_TYPES


def classify(tx_type: Union[TxType, str]) -> Optional[str]:
    """
    Returns "acquisition", "disposal", or None for types that leave the
    lot ledger untouched (e.g. OTHER).
    """
    if is_acquisition(tx_type):
        return ACQUISITION
    if is_disposal(tx_type):
        return DISPOSAL
    return None
