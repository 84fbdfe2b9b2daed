"""
costbasis/services/lots.py

Per-asset lot ledger and disposal matching.

Each accounting method is a strategy with the same contract:

    consume(lots, amount) -> ConsumeResult(consumed=[(lot, amount_used)], remaining=[lot])

Strategies never mutate the lots they are given; partially used lots are
replaced with copies carrying the reduced amount and recomputed total cost,
and fully used lots simply do not appear in 'remaining'.

match_disposal() turns one disposal transaction into DisposalEvents, one per
lot touched, apportioning the transaction's proceeds pro-rata by amount.

Average cost anchors the pooled lot at the EARLIEST acquisition date among the
lots that existed before the collapse. Do not replace it with a
recency-weighted date.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from costbasis.constants import (
    LONG_TERM_THRESHOLD_DAYS,
    AVERAGE_COST_EVENT_LOT_ID,
    AVERAGE_COST_LOT_ID,
)
from costbasis.schemas.gains import (
    CostBasisLot,
    CostBasisMethod,
    DisposalEvent,
    OversellPolicy,
    TransactionInput,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------
class GainsCalculationError(ValueError):
    """A computation that cannot produce a meaningful cost-basis result."""


class InvalidTransactionError(GainsCalculationError):
    """Required transaction data is missing or out of range."""


class InsufficientLotsError(GainsCalculationError):
    """A disposal asks for more of an asset than the open lots hold."""

    def __init__(self, asset: str, transaction_id: str, requested: Decimal, available: Decimal):
        self.asset = asset
        self.transaction_id = transaction_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Transaction {transaction_id} disposes {requested} {asset} "
            f"but only {available} is held in open lots."
        )


# ------------------------------------------------------------------------------
# Lot helpers
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class ConsumeResult:
    consumed: List[Tuple[CostBasisLot, Decimal]]
    remaining: List[CostBasisLot]


def total_remaining(lots: Sequence[CostBasisLot]) -> Decimal:
    return sum((lot.amount for lot in lots), ZERO)


def total_cost(lots: Sequence[CostBasisLot]) -> Decimal:
    return sum((lot.total_cost for lot in lots), ZERO)


def open_lot(
    lot_id: str,
    acquisition_date: datetime,
    amount: Decimal,
    price: Decimal,
    exchange: Optional[str] = None,
) -> CostBasisLot:
    """
    New lot for an acquisition: remaining == original == amount,
    cost basis is the unit price (zero when the source gave none).
    """
    return CostBasisLot(
        id=lot_id,
        acquisition_date=acquisition_date,
        amount=amount,
        original_amount=amount,
        cost_basis=price,
        total_cost=amount * price,
        exchange=exchange,
    )


def holding_period_days(acquisition_date: datetime, disposal_date: datetime) -> int:
    """Whole days held, floored."""
    return (disposal_date - acquisition_date).days


def is_short_term(holding_period: int) -> bool:
    return holding_period <= LONG_TERM_THRESHOLD_DAYS


# ------------------------------------------------------------------------------
# Strategies
# ------------------------------------------------------------------------------
def _consume_in_order(ordered_lots: List[CostBasisLot], amount: Decimal) -> ConsumeResult:
    consumed: List[Tuple[CostBasisLot, Decimal]] = []
    remaining: List[CostBasisLot] = []
    to_dispose = amount

    for lot in ordered_lots:
        if to_dispose <= 0:
            remaining.append(lot)
            continue

        if lot.amount <= to_dispose:
            consumed.append((lot, lot.amount))
            to_dispose -= lot.amount
        else:
            consumed.append((lot, to_dispose))
            left = lot.amount - to_dispose
            remaining.append(lot.model_copy(update={
                "amount": left,
                "total_cost": left * lot.cost_basis,
            }))
            to_dispose = ZERO

    return ConsumeResult(consumed=consumed, remaining=remaining)


def consume_fifo(lots: Sequence[CostBasisLot], amount: Decimal) -> ConsumeResult:
    """Oldest acquisition first. Equal dates keep ledger order."""
    ordered = sorted(lots, key=lambda lot: lot.acquisition_date)
    return _consume_in_order(ordered, amount)


def consume_lifo(lots: Sequence[CostBasisLot], amount: Decimal) -> ConsumeResult:
    """Newest acquisition first. Equal dates keep ledger order."""
    ordered = sorted(lots, key=lambda lot: lot.acquisition_date, reverse=True)
    return _consume_in_order(ordered, amount)


def pool_lots(lots: Sequence[CostBasisLot]) -> Optional[CostBasisLot]:
    """
    Collapse open lots into one weighted-average pseudo-lot dated at the
    earliest acquisition. Returns None for an empty ledger.
    """
    if not lots:
        return None

    amount = total_remaining(lots)
    cost = total_cost(lots)
    average = cost / amount if amount > 0 else ZERO
    earliest = min(lots, key=lambda lot: lot.acquisition_date)

    return CostBasisLot(
        id=AVERAGE_COST_EVENT_LOT_ID,
        acquisition_date=earliest.acquisition_date,
        amount=amount,
        original_amount=amount,
        cost_basis=average,
        total_cost=cost,
        exchange=lots[0].exchange,
    )


def consume_average_cost(lots: Sequence[CostBasisLot], amount: Decimal) -> ConsumeResult:
    pooled = pool_lots(lots)
    if pooled is None:
        return ConsumeResult(consumed=[], remaining=[])

    used = min(amount, pooled.amount)
    left = pooled.amount - amount
    remaining: List[CostBasisLot] = []
    if left > 0:
        remaining.append(CostBasisLot(
            id=AVERAGE_COST_LOT_ID,
            acquisition_date=pooled.acquisition_date,
            amount=left,
            original_amount=left,
            cost_basis=pooled.cost_basis,
            total_cost=left * pooled.cost_basis,
            exchange=pooled.exchange,
        ))

    return ConsumeResult(consumed=[(pooled, used)], remaining=remaining)


Strategy = Callable[[Sequence[CostBasisLot], Decimal], ConsumeResult]

DISPOSAL_STRATEGIES: Dict[CostBasisMethod, Strategy] = {
    CostBasisMethod.FIFO: consume_fifo,
    CostBasisMethod.LIFO: consume_lifo,
    CostBasisMethod.AVERAGE_COST: consume_average_cost,
}


def get_strategy(method: CostBasisMethod) -> Strategy:
    try:
        return DISPOSAL_STRATEGIES[CostBasisMethod(method)]
    except (KeyError, ValueError):
        raise GainsCalculationError(f"Unknown cost basis method: {method}")


# ------------------------------------------------------------------------------
# Disposal matcher
# ------------------------------------------------------------------------------
def match_disposal(
    tx: TransactionInput,
    asset: str,
    lots: Sequence[CostBasisLot],
    amount: Decimal,
    proceeds: Decimal,
    method: CostBasisMethod,
    oversell_policy: OversellPolicy = OversellPolicy.REJECT,
) -> Tuple[List[DisposalEvent], List[CostBasisLot]]:
    """
    Consume 'amount' of 'asset' from 'lots' for one disposal transaction.

    Returns (events, remaining_lots). Under REJECT an oversell raises
    InsufficientLotsError before anything is consumed. Under TRUNCATE the
    ledger is emptied: FIFO/LIFO emit events only for what was held, while
    average cost prices the whole amount at the pre-disposal average.
    """
    available = total_remaining(lots)
    oversold = amount > available

    if oversold:
        if oversell_policy == OversellPolicy.REJECT:
            raise InsufficientLotsError(asset, tx.id, amount, available)
        logger.warning(
            "Transaction %s oversells %s: requested=%s available=%s; truncating to open lots.",
            tx.id, asset, amount, available,
        )

    result = get_strategy(method)(lots, amount)
    consumed = result.consumed

    if oversold and method == CostBasisMethod.AVERAGE_COST:
        pooled = consumed[0][0] if consumed else CostBasisLot(
            id=AVERAGE_COST_EVENT_LOT_ID,
            acquisition_date=tx.timestamp,
            amount=ZERO,
            original_amount=ZERO,
            cost_basis=ZERO,
            total_cost=ZERO,
        )
        consumed = [(pooled, amount)]

    events: List[DisposalEvent] = []
    for lot, used in consumed:
        lot_proceeds = proceeds * used / amount
        lot_cost_basis = lot.cost_basis * used
        held = holding_period_days(lot.acquisition_date, tx.timestamp)

        events.append(DisposalEvent(
            transaction_id=tx.id,
            disposal_date=tx.timestamp,
            asset=asset,
            amount=used,
            proceeds=lot_proceeds,
            cost_basis=lot_cost_basis,
            gain_loss=lot_proceeds - lot_cost_basis,
            short_term=is_short_term(held),
            lot_id=lot.id,
            holding_period=held,
            exchange=tx.exchange,
        ))
        logger.debug(
            "Tx %s: %s %s from lot %s (basis=%s, proceeds=%s, days=%d)",
            tx.id, used, asset, lot.id, lot_cost_basis, lot_proceeds, held,
        )

    return events, result.remaining
