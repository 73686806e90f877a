"""
Rule evaluator tests — flat / per_cu_in / tiered, exact decimal math.

Tests:
1-2.  flat ignores quantity and volume
3-6.  per_cu_in math, no float drift, volume required and non-negative
7-10. tiered boundaries and sub-metrics
11-13. negative quantity, bad numbers, Money arithmetic
"""

import uuid
from decimal import Decimal

import pytest

from foamquote.errors import EvaluationError
from foamquote.pricebook import PriceRule
from foamquote.rule_evaluator import Money, evaluate, sum_money, to_decimal


def _rule(metric, formula):
    return PriceRule.model_validate({
        "id": str(uuid.uuid4()),
        "applies_to": "product",
        "metric": metric,
        "formula": formula,
    })


def _two_tier_rule(rate_a="0.10", rate_b="0.12"):
    """[0, 10) -> rate A, [10, inf) -> rate B."""
    return _rule("tiered", {"tiers": [
        {"min_qty": 0, "metric": "per_cu_in", "rate": rate_a},
        {"min_qty": 10, "metric": "per_cu_in", "rate": rate_b},
    ]})


# ============================================================
# 1-2. flat
# ============================================================

def test_flat_returns_fixed_amount():
    money = evaluate(_rule("flat", "12.50"), quantity=3)
    assert money.amount == Decimal("12.50")
    assert money.currency == "USD"


def test_flat_ignores_volume_and_quantity():
    rule = _rule("flat", {"amount": 40})
    assert evaluate(rule, 1, None).amount == evaluate(rule, 500, 9999).amount


# ============================================================
# 3-6. per_cu_in
# ============================================================

def test_per_cu_in_exact():
    """0.05 x 40 x 3 = 6.00 exactly."""
    money = evaluate(_rule("per_cu_in", 0.05), quantity=3, unit_volume=40)
    assert money.amount == Decimal("6.00")
    assert money.rounded().amount == Decimal("6.00")


def test_per_cu_in_no_drift_over_repeated_sums():
    rule = _rule("per_cu_in", 0.05)
    total = sum_money(evaluate(rule, 3, 40) for _ in range(1000))
    assert total.amount == Decimal("6000.00")

    # Same check on a value that drifts with binary floats
    rule = _rule("per_cu_in", "0.1")
    total = sum_money(evaluate(rule, 1, 1) for _ in range(1000))
    assert total.amount == Decimal("100.0")


def test_per_cu_in_requires_volume():
    with pytest.raises(EvaluationError, match="unit volume"):
        evaluate(_rule("per_cu_in", "0.05"), quantity=1, unit_volume=None)


def test_per_cu_in_rejects_negative_volume():
    with pytest.raises(EvaluationError):
        evaluate(_rule("per_cu_in", "0.05"), quantity=1, unit_volume=-1)


# ============================================================
# 7-10. tiered
# ============================================================

def test_tier_boundary_is_inclusive_on_upper_tier():
    rule = _two_tier_rule()
    assert evaluate(rule, 9, 10).amount == Decimal("0.10") * 10 * 9
    assert evaluate(rule, 10, 10).amount == Decimal("0.12") * 10 * 10


def test_last_tier_is_open_ended():
    rule = _two_tier_rule()
    assert evaluate(rule, 1_000_000, 1).amount == Decimal("0.12") * 1_000_000


def test_tier_with_flat_sub_metric():
    rule = _rule("tiered", {"tiers": [
        {"min_qty": 0, "metric": "flat", "amount": "25"},
        {"min_qty": 100, "metric": "per_cu_in", "rate": "0.01"},
    ]})
    assert evaluate(rule, 50).amount == Decimal("25")  # flat tier needs no volume
    assert evaluate(rule, 100, 20).amount == Decimal("20.00")
    with pytest.raises(EvaluationError):
        evaluate(rule, 100, None)


def test_tier_with_zero_quantity_uses_first_tier():
    rule = _two_tier_rule()
    assert evaluate(rule, 0, 10).amount == Decimal("0")


# ============================================================
# 11-13. Errors and Money
# ============================================================

@pytest.mark.parametrize("rule", [
    _rule("flat", "5"),
    _rule("per_cu_in", "0.05"),
    _two_tier_rule(),
])
def test_negative_quantity_always_fails(rule):
    with pytest.raises(EvaluationError) as exc_info:
        evaluate(rule, -1, 10)
    assert exc_info.value.rule_id == str(rule.id)


@pytest.mark.parametrize("bad", ["abc", float("nan"), float("inf"), True])
def test_non_numeric_quantity_fails(bad):
    with pytest.raises(EvaluationError):
        evaluate(_rule("flat", "5"), bad)


def test_money_addition_and_rounding():
    a = Money(amount=Decimal("1.005"))
    b = Money(amount=Decimal("2"))
    assert (a + b).amount == Decimal("3.005")
    assert (a + b).rounded().amount == Decimal("3.01")
    assert str(a + b) == "USD 3.01"
    with pytest.raises(EvaluationError, match="Cannot add EUR to USD"):
        a + Money(amount=Decimal("1"), currency="EUR")


def test_to_decimal_goes_through_str():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(3) == Decimal(3)
