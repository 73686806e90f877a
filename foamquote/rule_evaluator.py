"""
Rule evaluator — computes the money amount for one line item.

    flat        formula amount; quantity and volume ignored
    per_cu_in   rate * unit_volume * quantity
    tiered      pick the tier containing quantity, then apply its own
                flat / per_cu_in sub-metric

Pure Decimal math. Floats are converted through str() so 0.05 stays 0.05.
Rounding to cents happens only at the output boundary (Money.rounded()).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import EvaluationError
from .pricebook import FlatFormula, PerCubicInchFormula, PriceRule, Tier, TieredFormula

CENT = Decimal("0.01")


class Money(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency != self.currency:
            raise EvaluationError(f"Cannot add {other.currency} to {self.currency}")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def rounded(self) -> "Money":
        return Money(amount=self.amount.quantize(CENT, rounding=ROUND_HALF_UP), currency=self.currency)

    def __str__(self) -> str:
        return f"{self.currency} {self.rounded().amount:,.2f}"

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(amount=Decimal("0"), currency=currency)


def to_decimal(value, field: str = "value") -> Decimal:
    """Exact Decimal from int / float / str / Decimal."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise EvaluationError(f"{field} must be a number, got {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise EvaluationError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise EvaluationError(f"{field} must be finite, got {value!r}")
    return result


def _per_cu_in(rate: Decimal, quantity: Decimal, unit_volume, rule_id) -> Decimal:
    if unit_volume is None:
        raise EvaluationError("per_cu_in pricing requires a unit volume", rule_id)
    volume = to_decimal(unit_volume, "unit_volume")
    if volume < 0:
        raise EvaluationError(f"unit volume must be >= 0, got {volume}", rule_id)
    return rate * volume * quantity


def _apply_tier(tier: Tier, quantity: Decimal, unit_volume, rule_id) -> Decimal:
    if tier.metric == "flat":
        return tier.amount
    return _per_cu_in(tier.rate, quantity, unit_volume, rule_id)


def evaluate(
    rule: PriceRule,
    quantity,
    unit_volume=None,
    currency: str = "USD",
) -> Money:
    """
    Price one line item with `rule`.

    Raises EvaluationError for negative quantity, missing/negative volume
    on volume-based pricing, or a tiered rule with no matching tier.
    """
    qty = to_decimal(quantity, "quantity")
    if qty < 0:
        raise EvaluationError(f"quantity must be >= 0, got {qty}", rule.id)

    formula = rule.formula
    if isinstance(formula, FlatFormula):
        amount = formula.amount
    elif isinstance(formula, PerCubicInchFormula):
        amount = _per_cu_in(formula.rate, qty, unit_volume, rule.id)
    elif isinstance(formula, TieredFormula):
        tier = formula.tier_for(qty)
        if tier is None:
            # Validation guarantees a tier starting at 0; broken snapshot
            raise EvaluationError(f"no tier covers quantity {qty}", rule.id)
        amount = _apply_tier(tier, qty, unit_volume, rule.id)
    else:
        raise EvaluationError(f"unsupported metric '{rule.metric}'", rule.id)

    return Money(amount=amount, currency=currency)


def sum_money(amounts, currency: str = "USD") -> Money:
    """Exact sum; an empty iterable is zero in `currency`."""
    total = Money.zero(currency)
    for money in amounts:
        total = total + money
    return total


def round_cents(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
