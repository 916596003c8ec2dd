"""Cost accounting for billable provider calls."""

from adstudio.costs.ledger import CostLedger
from adstudio.costs.rates import API_COSTS, price_for, round_cents, to_money

__all__ = ["CostLedger", "API_COSTS", "price_for", "round_cents", "to_money"]
