import pytest

from app.core.amounts import clamp_non_negative, round_currency


@pytest.mark.parametrize("amount,expected", [
    (0, 0.0),
    (1.005, 1.01),
    (2.675, 2.68),
    (10.004, 10.0),
    (-3.455, -3.46),
    ("12.345", 12.35),
])
def test_round_currency_half_up(amount, expected):
    assert round_currency(amount) == expected


def test_clamp_non_negative():
    assert clamp_non_negative(-0.01) == 0.0
    assert clamp_non_negative(4.2) == 4.2
