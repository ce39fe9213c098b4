"""Cost arithmetic shared by the router and the metrics logger.

Costs are computed in `Decimal` and rounded half-up to a fixed number of
decimal places before being exposed as floats, so the same inputs always
produce the same cost regardless of binary float artefacts.
"""

from decimal import ROUND_HALF_UP, Decimal

COST_DECIMAL_PLACES = 8
_QUANTUM = Decimal(1).scaleb(-COST_DECIMAL_PLACES)


def round_cost(value: float | Decimal) -> float:
    """Round a monetary amount half-up to `COST_DECIMAL_PLACES` places."""
    return float(Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def compute_cost(tokens_used: int, cost_per_token: float) -> float:
    """Return ``tokens_used * cost_per_token`` rounded half-up.

    Example:
        >>> compute_cost(150, 0.00003)
        0.0045
    """
    if tokens_used < 0:
        raise ValueError(f"tokens_used must be non-negative, got {tokens_used}")
    return round_cost(Decimal(tokens_used) * Decimal(str(cost_per_token)))
