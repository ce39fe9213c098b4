"""Cost arithmetic test suite."""
import pytest

from app.polyroute.core.pricing import compute_cost, round_cost


@pytest.mark.parametrize(
    "tokens, rate, expected",
    [
        (150, 0.00003, 0.0045),
        (100, 0.000015, 0.0015),
        (0, 0.00003, 0.0),
        (1, 0.000000005, 0.00000001),
        (3, 0.000000001, 0.0),
    ],
)
def test_compute_cost(tokens, rate, expected) -> None:
    assert compute_cost(tokens, rate) == expected


def test_negative_tokens_rejected() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        compute_cost(-1, 0.00001)


def test_round_cost_removes_float_noise() -> None:
    assert round_cost(0.1 + 0.2) == 0.3
    assert round_cost(0.000000015) == 0.00000002
