"""
Pricebook model — validated, versioned catalog of materials, cavities,
price rules and products.

A PriceBook is an immutable snapshot. Updates go through PriceBook.revise(),
which re-validates and returns a new snapshot with a new version string.

Cross-references (Product.material_ref / rule_ref) are NOT checked at load
time. They are resolved lazily through find_* (returns None) or require_*
(raises PricebookReferenceError) when a line item is actually priced.

Input: raw dict (e.g. parsed JSON from /api/pricebook/import)
Output: PriceBook or PricebookValidationError listing every failing field
"""

import json
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Tuple, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import PricebookReferenceError, PricebookValidationError

logger = logging.getLogger(__name__)

SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]+)?$")

PRICE_METRICS = ("per_cu_in", "flat", "tiered")


def _float_via_str(value):
    # 0.05 must become Decimal("0.05"), not the binary expansion
    if isinstance(value, float):
        return repr(value)
    return value


Amount = Annotated[Decimal, BeforeValidator(_float_via_str)]


class _Snapshot(BaseModel):
    """Frozen base — unknown keys are dropped, nothing mutates after load."""
    model_config = ConfigDict(frozen=True, extra="ignore")


# --- Entities ---

class Material(_Snapshot):
    id: UUID
    name: str = Field(min_length=1)
    density_lb_ft3: Optional[float] = Field(default=None, gt=0)
    supplier_code: Optional[str] = None
    # Used by the material selector (color term, price tiebreak)
    color: Optional[str] = None
    price_per_ci: Optional[Amount] = Field(default=None, ge=0)


class CavityDims(_Snapshot):
    x: Optional[float] = Field(default=None, ge=0)
    y: Optional[float] = Field(default=None, ge=0)
    z: Optional[float] = Field(default=None, ge=0)
    r: Optional[float] = Field(default=None, ge=0)


class Cavity(_Snapshot):
    id: UUID
    shape: Literal["rect", "cyl", "custom"]
    dims: CavityDims = Field(default_factory=CavityDims)
    # Computed upstream, trusted as authoritative
    volume_ci: float = Field(ge=0)
    notes: Optional[str] = None


class ProductDims(_Snapshot):
    x: float
    y: float
    z: float


class Product(_Snapshot):
    id: UUID
    sku: str = Field(min_length=1)
    description: Optional[str] = None
    dims: ProductDims
    volume_ci: float = Field(ge=0)
    material_ref: Optional[UUID] = None
    rule_ref: Optional[UUID] = None


# --- Price rule formulas (tagged by metric) ---

class FlatFormula(_Snapshot):
    kind: Literal["flat"] = "flat"
    amount: Amount = Field(ge=0)


class PerCubicInchFormula(_Snapshot):
    kind: Literal["per_cu_in"] = "per_cu_in"
    rate: Amount = Field(ge=0)


class Tier(_Snapshot):
    """
    One quantity bracket. Covers [min_qty, next tier's min_qty).
    metric decides whether the bracket charges a fixed amount or a
    per-cubic-inch rate.
    """
    min_qty: Amount = Field(ge=0)
    metric: Literal["flat", "per_cu_in"] = "per_cu_in"
    amount: Optional[Amount] = Field(default=None, ge=0)
    rate: Optional[Amount] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_price_field(self):
        if self.metric == "flat" and self.amount is None:
            raise ValueError("flat tier requires 'amount'")
        if self.metric == "per_cu_in" and self.rate is None:
            raise ValueError("per_cu_in tier requires 'rate'")
        return self

    @property
    def price(self) -> Decimal:
        return self.amount if self.metric == "flat" else self.rate


class TieredFormula(_Snapshot):
    kind: Literal["tiered"] = "tiered"
    tiers: Tuple[Tier, ...] = Field(min_length=1)
    # Explicit override for quantity-discount schedules
    allow_rate_decrease: bool = False

    @model_validator(mode="before")
    @classmethod
    def _lift_breakpoints(cls, data):
        """Accept {"breakpoints": [...], "rates": [...]} as shorthand for tiers."""
        if not isinstance(data, dict) or "tiers" in data or "breakpoints" not in data:
            return data
        breakpoints = data.get("breakpoints") or []
        rates = data.get("rates") or []
        if len(breakpoints) != len(rates):
            raise ValueError(
                f"breakpoints ({len(breakpoints)}) and rates ({len(rates)}) "
                f"must have the same length"
            )
        sub_metric = data.get("metric", "per_cu_in")
        price_key = "amount" if sub_metric == "flat" else "rate"
        lifted = {k: v for k, v in data.items() if k not in ("breakpoints", "rates", "metric")}
        lifted["tiers"] = [
            {"min_qty": bp, "metric": sub_metric, price_key: rate}
            for bp, rate in zip(breakpoints, rates)
        ]
        return lifted

    @model_validator(mode="after")
    def _check_ordering(self):
        if self.tiers[0].min_qty != 0:
            raise ValueError(
                f"first tier must start at quantity 0, got {self.tiers[0].min_qty}"
            )
        for prev, cur in zip(self.tiers, self.tiers[1:]):
            if cur.min_qty <= prev.min_qty:
                raise ValueError(
                    f"tier breakpoints must be strictly ascending "
                    f"({prev.min_qty} then {cur.min_qty})"
                )
            # Only like-for-like prices are comparable
            if (not self.allow_rate_decrease and cur.metric == prev.metric
                    and cur.price < prev.price):
                raise ValueError(
                    f"tier at {cur.min_qty} lowers the {cur.metric} price "
                    f"({prev.price} -> {cur.price}); set allow_rate_decrease to permit"
                )
        return self

    def tier_for(self, quantity: Decimal) -> Optional[Tier]:
        """The tier whose [min_qty, next min_qty) range contains quantity."""
        match = None
        for tier in self.tiers:
            if quantity >= tier.min_qty:
                match = tier
            else:
                break
        return match


Formula = Annotated[
    Union[FlatFormula, PerCubicInchFormula, TieredFormula],
    Field(discriminator="kind"),
]


class PriceRule(_Snapshot):
    id: UUID
    applies_to: Literal["material", "product", "cavity"]
    metric: Literal["per_cu_in", "flat", "tiered"]
    formula: Formula

    @model_validator(mode="before")
    @classmethod
    def _tag_formula(cls, data):
        """
        Lift the loose formula shapes (bare number, numeric string, JSON
        string, untagged mapping) into the variant named by metric.
        """
        if not isinstance(data, dict):
            return data
        metric = data.get("metric")
        formula = data.get("formula")
        if metric not in PRICE_METRICS or formula is None:
            return data

        if isinstance(formula, str):
            text = formula.strip()
            if text.startswith("{"):
                try:
                    formula = json.loads(text)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"formula is not valid JSON: {exc.msg}")
            else:
                formula = text

        if isinstance(formula, (int, float, str, Decimal)) and not isinstance(formula, bool):
            if metric == "flat":
                formula = {"kind": "flat", "amount": formula}
            elif metric == "per_cu_in":
                formula = {"kind": "per_cu_in", "rate": formula}
            else:
                raise ValueError("tiered formula must be a mapping of tiers")
        elif isinstance(formula, dict):
            formula = dict(formula)
            kind = formula.setdefault("kind", metric)
            if kind != metric:
                raise ValueError(f"formula kind '{kind}' does not match metric '{metric}'")

        return {**data, "formula": formula}


# --- Snapshot ---

class PriceBookTables(_Snapshot):
    materials: Tuple[Material, ...] = ()
    cavities: Tuple[Cavity, ...] = ()
    price_rules: Tuple[PriceRule, ...] = ()
    products: Tuple[Product, ...] = ()


class PriceBook(_Snapshot):
    name: str = Field(min_length=1)
    version: str = "1.0.0"
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    created_at: Optional[datetime] = None
    notes: Optional[str] = None
    tables: PriceBookTables = Field(default_factory=PriceBookTables)

    _materials: dict = PrivateAttr(default_factory=dict)
    _cavities: dict = PrivateAttr(default_factory=dict)
    _rules: dict = PrivateAttr(default_factory=dict)
    _products: dict = PrivateAttr(default_factory=dict)
    _skus: dict = PrivateAttr(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _semver(cls, v: str) -> str:
        if not SEMVER_RE.match(v):
            raise ValueError(f"version must be semantic (MAJOR.MINOR.PATCH), got '{v}'")
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def _upper_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    def model_post_init(self, __context) -> None:
        # First entry wins on duplicate ids, matching input order
        for m in self.tables.materials:
            self._materials.setdefault(m.id, m)
        for c in self.tables.cavities:
            self._cavities.setdefault(c.id, c)
        for r in self.tables.price_rules:
            self._rules.setdefault(r.id, r)
        for p in self.tables.products:
            self._products.setdefault(p.id, p)
            self._skus.setdefault(p.sku, p)

    # --- Lookups ---

    def find_material(self, material_id) -> Optional[Material]:
        return self._materials.get(_as_uuid(material_id))

    def find_cavity(self, cavity_id) -> Optional[Cavity]:
        return self._cavities.get(_as_uuid(cavity_id))

    def find_rule(self, rule_id) -> Optional[PriceRule]:
        return self._rules.get(_as_uuid(rule_id))

    def find_product(self, product_id) -> Optional[Product]:
        return self._products.get(_as_uuid(product_id))

    def find_product_by_sku(self, sku: str) -> Optional[Product]:
        return self._skus.get(sku)

    def require_material(self, material_id, path: str = "") -> Material:
        return _require(self.find_material(material_id), "material", material_id, path)

    def require_cavity(self, cavity_id, path: str = "") -> Cavity:
        return _require(self.find_cavity(cavity_id), "cavity", cavity_id, path)

    def require_rule(self, rule_id, path: str = "") -> PriceRule:
        return _require(self.find_rule(rule_id), "price_rule", rule_id, path)

    def require_product(self, product_id, path: str = "") -> Product:
        return _require(self.find_product(product_id), "product", product_id, path)

    def counts(self) -> dict:
        return {
            "materials": len(self.tables.materials),
            "cavities": len(self.tables.cavities),
            "price_rules": len(self.tables.price_rules),
            "products": len(self.tables.products),
        }

    def revise(self, version: Optional[str] = None, **changes) -> "PriceBook":
        """
        Return a new snapshot with `changes` applied and a new version.
        Without an explicit version the patch number is bumped.
        """
        data = self.model_dump()
        data.update(changes)
        data["version"] = version or bump_patch(self.version)
        return validate_pricebook(data)


def _as_uuid(value) -> Optional[UUID]:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _require(entity, kind: str, ref_id, path: str):
    if entity is None:
        raise PricebookReferenceError(kind, ref_id, path)
    return entity


def bump_patch(version: str) -> str:
    """1.2.3 -> 1.2.4 (pre-release/build suffix is dropped)."""
    core = re.split(r"[-+]", version, maxsplit=1)[0]
    major, minor, patch = (int(p) for p in core.split("."))
    return f"{major}.{minor}.{patch + 1}"


def validate_pricebook(raw) -> PriceBook:
    """
    Validate a raw pricebook payload.

    Idempotent: validate_pricebook(pb.model_dump()) == pb for any valid pb.
    Raises PricebookValidationError with every failing field.
    """
    if isinstance(raw, PriceBook):
        raw = raw.model_dump()
    try:
        pricebook = PriceBook.model_validate(raw)
    except ValidationError as exc:
        error = PricebookValidationError.from_pydantic(exc)
        logger.warning("Rejected pricebook: %d issue(s)", len(error.issues))
        raise error from exc
    logger.info(
        "Validated pricebook %s v%s (%s)",
        pricebook.name, pricebook.version, pricebook.counts(),
    )
    return pricebook


def validate_pricebook_json(text) -> PriceBook:
    """Same as validate_pricebook, for a JSON document (str or bytes)."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PricebookValidationError([{"loc": "", "msg": f"Invalid JSON: {exc.msg}", "input": None}])
    return validate_pricebook(raw)
