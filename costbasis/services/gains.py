"""
costbasis/services/gains.py

Realized gains/losses engine.

calculate_gains_losses() sorts the full transaction history by timestamp and
folds it, left to right, into a LedgerState (open lots per asset, recorded
disposal events, parse warnings). Acquisitions open lots; disposals are handed
to services.lots.match_disposal with the chosen method's strategy. Once the
fold is done the aggregator rolls the events up per asset and for the whole
portfolio, and the holdings builder reads whatever lots are still open.

CALLER CONTRACT: always pass the COMPLETE, unwindowed history. The
start/end window only decides which disposal events are reported; every
transaction still moves the ledger so later cost bases stay correct. Handing
in a pre-filtered list silently produces wrong cost bases.

The engine holds no state between calls. Numeric text that cannot be parsed
is treated as zero, logged, and listed in result.warnings.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from functools import reduce
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from costbasis import config
from costbasis.schemas.gains import (
    AssetGainsLosses,
    AssetHolding,
    CostBasisLot,
    CostBasisMethod,
    DisposalEvent,
    FormattedValue,
    GainsLossesResult,
    GainsPeriod,
    GainsSummary,
    OversellPolicy,
    PortfolioSnapshot,
    QuickStats,
    TransactionInput,
    force_utc,
)
from costbasis.services.classifier import ACQUISITION, classify
from costbasis.services.lots import (  # noqa: F401 (errors re-exported)
    ZERO,
    GainsCalculationError,
    InsufficientLotsError,
    InvalidTransactionError,
    match_disposal,
    open_lot,
    total_cost,
    total_remaining,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Fold accumulator
# ------------------------------------------------------------------------------
# Persistent chain of per-step chunks: (chunk, previous_chain) or None.
# Pushing is O(1); flatten once after the fold.
Chain = Optional[Tuple[tuple, "Chain"]]


def push_chunk(chain: Chain, items: Sequence) -> Chain:
    if not items:
        return chain
    return (tuple(items), chain)


def flatten_chain(chain: Chain) -> list:
    """Items in push order."""
    chunks = []
    while chain is not None:
        chunk, chain = chain
        chunks.append(chunk)
    return [item for chunk in reversed(chunks) for item in chunk]


@dataclass(frozen=True)
class LedgerState:
    lots: Dict[str, Tuple[CostBasisLot, ...]] = field(default_factory=dict)
    events: Chain = None
    warnings: Chain = None


def parse_decimal(raw: Optional[str]) -> Optional[Decimal]:
    """
    Decimal value of raw text. None/blank -> Decimal("0"); unparseable or
    non-finite text -> None so the caller can flag it.
    """
    if raw is None:
        return ZERO
    text = str(raw).strip()
    if not text:
        return ZERO
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def _read_number(tx: TransactionInput, field_name: str, warnings: List[str]) -> Decimal:
    raw = getattr(tx, field_name)
    value = parse_decimal(raw)
    if value is None:
        message = f"Transaction {tx.id}: {field_name} {raw!r} is not numeric; treated as 0."
        logger.warning(message)
        warnings.append(message)
        return ZERO
    return value


def _in_window(ts: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


def _resolve_oversell_policy(policy: Optional[OversellPolicy]) -> OversellPolicy:
    raw = policy if policy is not None else str(config.OVERSELL_POLICY).strip().lower()
    try:
        return OversellPolicy(raw)
    except ValueError:
        raise GainsCalculationError(
            f"Unknown oversell policy {raw!r}; use 'reject' or 'truncate'."
        )


def sort_transactions(transactions: Iterable[TransactionInput]) -> List[TransactionInput]:
    """Chronological; same-timestamp rows keep their input order."""
    return sorted(transactions, key=lambda tx: tx.timestamp)


def _make_step(
    method: CostBasisMethod,
    start: Optional[datetime],
    end: Optional[datetime],
    oversell_policy: OversellPolicy,
):
    def step(state: LedgerState, tx: TransactionInput) -> LedgerState:
        kind = classify(tx.type)
        if kind is None:
            return state

        tx_warnings: List[str] = []
        amount = _read_number(tx, "amount", tx_warnings)
        price = _read_number(tx, "price", tx_warnings)
        # fee is not part of cost basis or proceeds; read only to flag bad input
        _read_number(tx, "fee", tx_warnings)
        warnings = push_chunk(state.warnings, tx_warnings)

        if amount < 0:
            raise InvalidTransactionError(f"Transaction {tx.id} has a negative amount ({amount}).")
        if amount == 0:
            return LedgerState(lots=state.lots, events=state.events, warnings=warnings)

        asset = tx.asset.upper()
        lots = state.lots.get(asset, ())
        events = state.events

        if kind == ACQUISITION:
            new_lots = lots + (open_lot(tx.id, tx.timestamp, amount, price, tx.exchange),)
        else:
            new_events, remaining = match_disposal(
                tx, asset, lots, amount, amount * price, method, oversell_policy
            )
            new_lots = tuple(remaining)
            if _in_window(tx.timestamp, start, end):
                events = push_chunk(events, new_events)
            else:
                logger.debug("Tx %s outside reporting window; ledger updated, events dropped.", tx.id)

        return LedgerState(
            lots={**state.lots, asset: new_lots},
            events=events,
            warnings=warnings,
        )

    return step


# ------------------------------------------------------------------------------
# Main entry point
# ------------------------------------------------------------------------------
def calculate_gains_losses(
    transactions: Iterable[TransactionInput],
    method: CostBasisMethod = CostBasisMethod.FIFO,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    prices: Optional[Mapping[str, Decimal]] = None,
    oversell_policy: Optional[OversellPolicy] = None,
) -> GainsLossesResult:
    """
    Realized gains/losses over the full history for one cost basis method.

    Args:
        transactions: full ledger, any order (sorted here)
        method: FIFO, LIFO or AVERAGE_COST
        start_date / end_date: inclusive reporting window for disposal events
        prices: optional asset -> current unit price, used to value holdings
        oversell_policy: REJECT or TRUNCATE; defaults to COST_BASIS_OVERSELL_POLICY

    Raises:
        InsufficientLotsError: oversell under REJECT
        InvalidTransactionError: negative amounts
    """
    try:
        method = CostBasisMethod(method)
    except ValueError:
        raise GainsCalculationError(f"Unknown cost basis method: {method}")
    policy = _resolve_oversell_policy(oversell_policy)
    start_date = force_utc(start_date)
    end_date = force_utc(end_date)

    ordered = sort_transactions(transactions)
    logger.info(
        "Calculating gains/losses: method=%s transactions=%d window=[%s, %s]",
        method.value, len(ordered), start_date, end_date,
    )

    state = reduce(_make_step(method, start_date, end_date, policy), ordered, LedgerState())

    disposal_events = flatten_chain(state.events)
    asset_breakdown = calculate_asset_breakdown(disposal_events)
    current_holdings = calculate_current_holdings(state.lots, prices)
    summary = calculate_summary(asset_breakdown)

    effective_start = start_date or (ordered[0].timestamp if ordered else None)
    effective_end = end_date or (ordered[-1].timestamp if ordered else None)

    logger.info(
        "Gains/losses done: %d disposal events, %d assets held, net=%s",
        len(disposal_events), len(current_holdings), summary.net_realized_gain_loss,
    )

    return GainsLossesResult(
        method=method,
        period=GainsPeriod(start=effective_start, end=effective_end),
        summary=summary,
        asset_breakdown=asset_breakdown,
        current_holdings=current_holdings,
        disposal_events=disposal_events,
        warnings=flatten_chain(state.warnings),
    )


# ------------------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------------------
def calculate_asset_breakdown(disposal_events: Iterable[DisposalEvent]) -> List[AssetGainsLosses]:
    """
    One record per asset, in order of first disposal. A zero gain counts as
    a gain. Short/long bucket comes only from event.short_term.
    """
    by_asset: Dict[str, AssetGainsLosses] = {}

    for event in disposal_events:
        breakdown = by_asset.get(event.asset)
        if breakdown is None:
            breakdown = AssetGainsLosses(asset=event.asset)
            by_asset[event.asset] = breakdown

        breakdown.total_proceeds += event.proceeds
        breakdown.total_cost_basis += event.cost_basis
        breakdown.disposal_count += 1
        breakdown.disposals.append(event)

        if event.gain_loss >= 0:
            breakdown.total_realized_gain += event.gain_loss
            if event.short_term:
                breakdown.short_term_gain += event.gain_loss
            else:
                breakdown.long_term_gain += event.gain_loss
        else:
            loss = abs(event.gain_loss)
            breakdown.total_realized_loss += loss
            if event.short_term:
                breakdown.short_term_loss += loss
            else:
                breakdown.long_term_loss += loss

        breakdown.net_realized_gain_loss = breakdown.total_realized_gain - breakdown.total_realized_loss

    return list(by_asset.values())


def calculate_summary(asset_breakdown: Iterable[AssetGainsLosses]) -> GainsSummary:
    summary = GainsSummary()
    for asset in asset_breakdown:
        summary.total_realized_gain += asset.total_realized_gain
        summary.total_realized_loss += asset.total_realized_loss
        summary.net_realized_gain_loss += asset.net_realized_gain_loss
        summary.short_term_gain_loss += asset.short_term_gain - asset.short_term_loss
        summary.long_term_gain_loss += asset.long_term_gain - asset.long_term_loss
        summary.total_proceeds += asset.total_proceeds
        summary.total_cost_basis += asset.total_cost_basis
    return summary


# ------------------------------------------------------------------------------
# Holdings
# ------------------------------------------------------------------------------
def calculate_current_holdings(
    lots_by_asset: Mapping[str, Iterable[CostBasisLot]],
    prices: Optional[Mapping[str, Decimal]] = None,
) -> List[AssetHolding]:
    """
    Current holdings from the lots left open after the fold, largest cost
    basis first. current_value / unrealized_gain_loss are only filled for
    assets that have a price in 'prices'.
    """
    price_map = {k.upper(): Decimal(str(v)) for k, v in prices.items()} if prices else {}
    holdings: List[AssetHolding] = []

    for asset, asset_lots in lots_by_asset.items():
        lots = list(asset_lots)
        amount = total_remaining(lots)
        if not lots or amount <= 0:
            continue

        cost = total_cost(lots)
        ordered = sorted(lots, key=lambda lot: lot.acquisition_date)

        current_value = None
        unrealized = None
        if asset in price_map:
            current_value = amount * price_map[asset]
            unrealized = current_value - cost

        holdings.append(AssetHolding(
            asset=asset,
            total_amount=amount,
            average_cost=cost / amount,
            total_cost_basis=cost,
            current_value=current_value,
            unrealized_gain_loss=unrealized,
            lots=lots,
            earliest_acquisition=ordered[0].acquisition_date,
            latest_acquisition=ordered[-1].acquisition_date,
        ))

    holdings.sort(key=lambda h: h.total_cost_basis, reverse=True)
    return holdings


def calculate_holdings_at_date(
    transactions: Iterable[TransactionInput],
    target_date: datetime,
    prices: Optional[Mapping[str, Decimal]] = None,
    method: CostBasisMethod = CostBasisMethod.FIFO,
    oversell_policy: Optional[OversellPolicy] = None,
) -> PortfolioSnapshot:
    """
    Holdings as of 'target_date' (inclusive), optionally valued with 'prices'
    taken at that date. total_value is None unless prices are given.
    """
    target_date = force_utc(target_date)
    relevant = [tx for tx in transactions if tx.timestamp <= target_date]
    result = calculate_gains_losses(
        relevant, method, prices=prices, oversell_policy=oversell_policy
    )

    total_value = None
    if prices:
        total_value = sum(
            (h.current_value for h in result.current_holdings if h.current_value is not None),
            ZERO,
        )

    return PortfolioSnapshot(
        date=target_date,
        holdings=result.current_holdings,
        total_cost_basis=sum((h.total_cost_basis for h in result.current_holdings), ZERO),
        total_value=total_value,
    )


def get_asset_acquisition_history(
    transactions: Iterable[TransactionInput],
    asset: str,
    method: CostBasisMethod = CostBasisMethod.FIFO,
) -> List[CostBasisLot]:
    """Open lots for one asset (case-insensitive); [] if none are held."""
    result = calculate_gains_losses(transactions, method)
    wanted = asset.strip().upper()
    for holding in result.current_holdings:
        if holding.asset == wanted:
            return holding.lots
    return []


# ------------------------------------------------------------------------------
# Display helpers
# ------------------------------------------------------------------------------
def format_gain_loss(value: Decimal, currency_symbol: Optional[str] = None) -> str:
    """+$1,234.50 for gains (and zero), -$12.00 for losses."""
    symbol = config.CURRENCY_SYMBOL if currency_symbol is None else currency_symbol
    sign = "+" if value >= 0 else "-"
    return f"{sign}{symbol}{abs(value):,.2f}"


def _formatted(value: Decimal) -> FormattedValue:
    return FormattedValue(value=value, formatted=format_gain_loss(value), is_gain=value >= 0)


def get_quick_stats(result: GainsLossesResult) -> QuickStats:
    return QuickStats(
        net_gain_loss=_formatted(result.summary.net_realized_gain_loss),
        short_term_gain_loss=_formatted(result.summary.short_term_gain_loss),
        long_term_gain_loss=_formatted(result.summary.long_term_gain_loss),
        total_proceeds=result.summary.total_proceeds,
        total_cost_basis=result.summary.total_cost_basis,
        disposal_count=len(result.disposal_events),
        assets_traded=len(result.asset_breakdown),
    )
