"""
Fixed policy constants for the cost-basis engine.
These are NOT read from the environment; changing them changes tax outcomes.
"""

# Holding periods strictly greater than this are long-term
LONG_TERM_THRESHOLD_DAYS = 365

# Transaction types (upper-case, matching TxType values)
ACQUISITION_TYPES = frozenset({
    "BUY",
    "DEPOSIT",
    "REWARD",
    "UNSTAKE",
    "TRANSFER",  # incoming transfers
})

DISPOSAL_TYPES = frozenset({
    "SELL",
    "WITHDRAWAL",
    "SWAP",  # swap out
    "FEE",
    "STAKE",
})

assert not (ACQUISITION_TYPES & DISPOSAL_TYPES), "type buckets must be disjoint"

# Lot identifiers used by the average-cost method
AVERAGE_COST_EVENT_LOT_ID = "average-cost"
AVERAGE_COST_LOT_ID = "average-cost-lot"

# Display precision for CSV / PDF output
AMOUNT_DECIMALS = 8
MONEY_DECIMALS = 2
