"""
costbasis/schemas/gains.py

Pydantic v2 models for everything the cost-basis engine consumes or produces.

- TxType / CostBasisMethod / OversellPolicy: enums for type safety
- TransactionInput: one ledger row handed to the engine (never mutated)
- CostBasisLot: an open lot owned by the per-asset lot ledger
- DisposalEvent: one lot's share of one disposal transaction
- AssetGainsLosses, GainsSummary, AssetHolding, GainsLossesResult: outputs
- PortfolioSnapshot, QuickStats: derived views
- GainsRequest: body of the stateless /calculate endpoint

Quantities and money are Decimal throughout. Numeric fields on
TransactionInput are kept as raw text so the engine can degrade unparseable
values to zero (and report it) instead of rejecting the whole ledger.
"""

from enum import Enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


def force_utc(v: Optional[datetime]) -> Optional[datetime]:
    """
    Naive datetimes are taken as UTC; aware ones are converted to UTC.
    """
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# -------------------------------------------------
# ENUMS
# -------------------------------------------------

class TxType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    SWAP = "SWAP"
    STAKE = "STAKE"
    UNSTAKE = "UNSTAKE"
    REWARD = "REWARD"
    FEE = "FEE"
    OTHER = "OTHER"


class CostBasisMethod(str, Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    AVERAGE_COST = "AVERAGE_COST"


class OversellPolicy(str, Enum):
    REJECT = "reject"
    TRUNCATE = "truncate"


COST_BASIS_METHODS: Dict[CostBasisMethod, Dict[str, str]] = {
    CostBasisMethod.FIFO: {
        "label": "First In, First Out",
        "description": "Oldest acquired assets are sold first. Most common method for tax reporting.",
    },
    CostBasisMethod.LIFO: {
        "label": "Last In, First Out",
        "description": "Most recently acquired assets are sold first. May minimize short-term gains.",
    },
    CostBasisMethod.AVERAGE_COST: {
        "label": "Average Cost",
        "description": "Uses weighted average cost of all holdings. Simpler to track.",
    },
}


# -------------------------------------------------
# INPUT
# -------------------------------------------------

class TransactionInput(BaseModel):
    """
    A single ledger row as supplied by the transaction source.
    amount/price/fee are raw text; see services.gains.parse_decimal.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    timestamp: datetime
    type: TxType
    asset: str = Field(min_length=1)
    amount: str
    price: Optional[str] = None
    fee: Optional[str] = None
    exchange: Optional[str] = None

    @field_validator("id", mode="before")
    def stringify_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("type", mode="before")
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("asset")
    def strip_asset(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("asset symbol cannot be blank.")
        return v

    @field_validator("amount", "price", "fee", mode="before")
    def stringify_numbers(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("timestamp")
    def force_utc_timestamp(cls, v: datetime) -> datetime:
        return force_utc(v)


# -------------------------------------------------
# LEDGER STATE
# -------------------------------------------------

class CostBasisLot(BaseModel):
    """
    Open quantity of an asset acquired at one time and per-unit cost.
    'amount' is what remains; total_cost always equals amount * cost_basis.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    acquisition_date: datetime
    amount: Decimal
    original_amount: Decimal
    cost_basis: Decimal
    total_cost: Decimal
    exchange: Optional[str] = None


class DisposalEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    disposal_date: datetime
    asset: str
    amount: Decimal
    proceeds: Decimal
    cost_basis: Decimal
    gain_loss: Decimal
    short_term: bool
    lot_id: str
    holding_period: int
    exchange: Optional[str] = None


# -------------------------------------------------
# OUTPUT
# -------------------------------------------------

class AssetGainsLosses(BaseModel):
    asset: str
    total_realized_gain: Decimal = Decimal("0")
    total_realized_loss: Decimal = Decimal("0")
    net_realized_gain_loss: Decimal = Decimal("0")
    short_term_gain: Decimal = Decimal("0")
    short_term_loss: Decimal = Decimal("0")
    long_term_gain: Decimal = Decimal("0")
    long_term_loss: Decimal = Decimal("0")
    total_proceeds: Decimal = Decimal("0")
    total_cost_basis: Decimal = Decimal("0")
    disposal_count: int = 0
    disposals: List[DisposalEvent] = Field(default_factory=list)


class AssetHolding(BaseModel):
    asset: str
    total_amount: Decimal
    average_cost: Decimal
    total_cost_basis: Decimal
    current_value: Optional[Decimal] = None
    unrealized_gain_loss: Optional[Decimal] = None
    lots: List[CostBasisLot] = Field(default_factory=list)
    earliest_acquisition: Optional[datetime] = None
    latest_acquisition: Optional[datetime] = None


class GainsSummary(BaseModel):
    total_realized_gain: Decimal = Decimal("0")
    total_realized_loss: Decimal = Decimal("0")
    net_realized_gain_loss: Decimal = Decimal("0")
    short_term_gain_loss: Decimal = Decimal("0")
    long_term_gain_loss: Decimal = Decimal("0")
    total_proceeds: Decimal = Decimal("0")
    total_cost_basis: Decimal = Decimal("0")


class GainsPeriod(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class GainsLossesResult(BaseModel):
    """
    The engine's only output contract. 'warnings' lists numeric fields that
    could not be parsed and were treated as zero.
    """
    method: CostBasisMethod
    period: GainsPeriod
    summary: GainsSummary
    asset_breakdown: List[AssetGainsLosses] = Field(default_factory=list)
    current_holdings: List[AssetHolding] = Field(default_factory=list)
    disposal_events: List[DisposalEvent] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PortfolioSnapshot(BaseModel):
    date: datetime
    holdings: List[AssetHolding] = Field(default_factory=list)
    total_cost_basis: Decimal = Decimal("0")
    total_value: Optional[Decimal] = None


class FormattedValue(BaseModel):
    value: Decimal
    formatted: str
    is_gain: bool


class QuickStats(BaseModel):
    net_gain_loss: FormattedValue
    short_term_gain_loss: FormattedValue
    long_term_gain_loss: FormattedValue
    total_proceeds: Decimal
    total_cost_basis: Decimal
    disposal_count: int
    assets_traded: int


# -------------------------------------------------
# REQUEST
# -------------------------------------------------

class GainsRequest(BaseModel):
    """
    Body for POST /api/gains/calculate. 'transactions' must be the full
    history; the window only filters which disposals are reported.
    """
    transactions: List[TransactionInput]
    method: CostBasisMethod = CostBasisMethod.FIFO
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    prices: Optional[Dict[str, Decimal]] = None
    oversell_policy: Optional[OversellPolicy] = None

    @field_validator("method", mode="before")
    def normalize_method(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("start_date", "end_date")
    def force_utc_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return force_utc(v)
