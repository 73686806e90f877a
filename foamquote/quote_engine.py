"""
Quote engine — turns line item requests into a PricedQuote.

Pure math over an immutable pricebook snapshot. Each line item resolves its
product / rule / cavity references lazily, is evaluated on its own, and the
exact Decimal amounts are summed. Rounding to cents happens once, at the end.

Input: PriceBook + list of LineItemRequest
Output: PricedQuote (and derived facts saved to the facts store, if any)
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .config import settings
from .errors import EvaluationError, PricebookReferenceError
from .facts_store import FactsStore, QuoteFacts
from .material_selector import select_material
from .pricebook import PriceBook
from .rule_evaluator import Money, evaluate, round_cents, sum_money, to_decimal
from .schemas import LineItemRequest, PricedLineItem, PricedQuote

logger = logging.getLogger(__name__)


class QuoteEngine:
    """
    Prices quotes against one pricebook snapshot.
    Holds no per-quote state — safe to share across requests.
    """

    MARKUP_OPTIONS = [0, 5, 10, 15, 20, 25, 30, 35, 40, 45]

    def __init__(self, pricebook: PriceBook, facts_store: Optional[FactsStore] = None,
                 min_charge=None, markup_default: Optional[int] = None):
        self.pricebook = pricebook
        self.facts_store = facts_store
        self.min_charge = to_decimal(
            settings.MIN_CHARGE_DEFAULT if min_charge is None else min_charge, "min_charge"
        )
        self.markup_default = settings.MARKUP_DEFAULT if markup_default is None else markup_default

    def choose_material(self, spec):
        """Best catalog material for an extracted spec (None if the catalog is empty)."""
        return select_material(self.pricebook.tables.materials, spec)

    def price_line_item(self, item: LineItemRequest, path: str = "item") -> PricedLineItem:
        """
        Resolve references and evaluate one line.
        Raises PricebookReferenceError or EvaluationError.
        """
        pb = self.pricebook
        product = None
        if item.product_id is not None:
            product = pb.require_product(item.product_id, f"{path}.product_id")
        elif item.sku:
            product = pb.find_product_by_sku(item.sku)
            if product is None:
                raise PricebookReferenceError("product", item.sku, f"{path}.sku")

        if item.rule_id is not None:
            rule = pb.require_rule(item.rule_id, f"{path}.rule_id")
        elif product is not None and product.rule_ref is not None:
            rule = pb.require_rule(product.rule_ref, f"products[{product.sku}].rule_ref")
        else:
            raise EvaluationError(f"{path}: no price rule for product {product.sku}")

        material = None
        if product is not None and product.material_ref is not None:
            material = pb.require_material(
                product.material_ref, f"products[{product.sku}].material_ref"
            )

        if item.unit_volume is not None:
            unit_volume = item.unit_volume
        elif item.cavity_id is not None:
            unit_volume = pb.require_cavity(item.cavity_id, f"{path}.cavity_id").volume_ci
        elif product is not None:
            unit_volume = product.volume_ci
        else:
            unit_volume = None

        try:
            line = evaluate(rule, item.quantity, unit_volume, currency=pb.currency)
        except EvaluationError as e:
            raise EvaluationError(f"{path}: {e.detail}", e.rule_id) from e

        quantity = to_decimal(item.quantity, "quantity")
        unit_price = line.amount / quantity if quantity else line.amount

        return PricedLineItem(
            description=item.description or (product.description if product else None)
            or (product.sku if product else f"{rule.metric} rule"),
            sku=product.sku if product else None,
            rule_id=rule.id,
            metric=rule.metric,
            material_id=material.id if material else None,
            material_name=material.name if material else None,
            quantity=quantity,
            unit_volume_ci=to_decimal(unit_volume, "unit_volume") if unit_volume is not None else None,
            unit_price=round_cents(unit_price),
            line_total=line.amount,
        )

    def build_priced_quote(self, quote_no: str, items: List[LineItemRequest],
                           markup_pct: Optional[int] = None) -> PricedQuote:
        """
        Price every line, aggregate, apply the minimum charge and markup.
        The first failing line aborts the quote; the error names its index.
        """
        currency = self.pricebook.currency
        priced = [
            self.price_line_item(item, path=f"items[{i}]")
            for i, item in enumerate(items)
        ]

        raw_subtotal = sum_money(
            (Money(amount=p.line_total, currency=currency) for p in priced), currency
        ).amount

        notes = []
        subtotal = raw_subtotal
        if subtotal < self.min_charge:
            subtotal = self.min_charge
            notes.append("Minimum charge applied.")

        selected = self.markup_default if markup_pct is None else markup_pct
        markup_options = self._build_markup_options(subtotal)
        total = markup_options.get(str(selected), self._apply_markup(subtotal, selected))

        quote = PricedQuote(
            quote_no=str(quote_no),
            pricebook_name=self.pricebook.name,
            pricebook_version=self.pricebook.version,
            currency=currency,
            line_items=[p.model_copy(update={"line_total": round_cents(p.line_total)}) for p in priced],
            raw_subtotal=round_cents(raw_subtotal),
            subtotal=round_cents(subtotal),
            min_charge=round_cents(self.min_charge),
            markup_options=markup_options,
            selected_markup_pct=selected,
            total=total,
            notes=notes,
            created_at=datetime.utcnow(),
        )
        logger.info(
            "Priced quote %s: %d line(s), total %s %s",
            quote.quote_no, len(priced), quote.total, currency,
        )

        if self.facts_store is not None:
            self._record_facts(quote)
        return quote

    def recalculate_with_markup(self, priced_quote: PricedQuote, markup_pct: int) -> PricedQuote:
        """Same quote, new markup. Subtotal is not re-derived."""
        total = priced_quote.markup_options.get(
            str(markup_pct), self._apply_markup(priced_quote.subtotal, markup_pct)
        )
        return priced_quote.model_copy(update={"selected_markup_pct": markup_pct, "total": total})

    def _apply_markup(self, subtotal: Decimal, pct: int) -> Decimal:
        return round_cents(subtotal * (1 + Decimal(pct) / 100))

    def _build_markup_options(self, subtotal: Decimal) -> dict:
        """{"0": subtotal, "5": subtotal*1.05, ...}"""
        return {str(pct): self._apply_markup(subtotal, pct) for pct in self.MARKUP_OPTIONS}

    def _record_facts(self, quote: PricedQuote) -> QuoteFacts:
        """Merge derived totals into the quote's facts, keeping other keys."""
        derived = {
            "subtotal": str(quote.subtotal),
            "total": str(quote.total),
            "currency": quote.currency,
            "pricebook_version": quote.pricebook_version,
            "line_count": len(quote.line_items),
            "priced_at": quote.created_at.isoformat(),
        }

        def _merge(facts: QuoteFacts):
            for key, value in derived.items():
                setattr(facts, key, value)

        return self.facts_store.update(quote.quote_no, _merge)
