from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime
from uuid import UUID

from .extract import ExtractedSpec


class LineItemRequest(BaseModel):
    """
    One line to price. Either a product (by id or sku) whose rule_ref and
    volume are used, or an explicit rule with a cavity or unit volume.
    """
    description: Optional[str] = None
    product_id: Optional[UUID] = None
    sku: Optional[str] = None
    rule_id: Optional[UUID] = None
    cavity_id: Optional[UUID] = None
    unit_volume: Optional[float] = None
    quantity: float = 1.0

    @model_validator(mode="after")
    def _needs_target(self):
        if not (self.product_id or self.sku or self.rule_id):
            raise ValueError("line item needs product_id, sku or rule_id")
        return self


class PricedLineItem(BaseModel):
    description: str
    sku: Optional[str] = None
    rule_id: UUID
    metric: str
    material_id: Optional[UUID] = None
    material_name: Optional[str] = None
    quantity: Decimal
    unit_volume_ci: Optional[Decimal] = None
    unit_price: Decimal
    line_total: Decimal


class PricedQuote(BaseModel):
    quote_no: str
    pricebook_name: str
    pricebook_version: str
    currency: str
    line_items: List[PricedLineItem] = []
    raw_subtotal: Decimal
    subtotal: Decimal
    min_charge: Decimal
    markup_options: Dict[str, Decimal] = {}
    selected_markup_pct: int = 0
    total: Decimal
    notes: List[str] = []
    created_at: datetime


class QuoteCalcRequest(BaseModel):
    quote_no: str = Field(min_length=1)
    items: List[LineItemRequest] = Field(min_length=1)
    markup_pct: Optional[int] = Field(default=None, ge=0)


class MaterialSelectRequest(BaseModel):
    """Either a pre-extracted spec or raw request text to extract from."""
    spec: Optional[ExtractedSpec] = None
    text: Optional[str] = None


class MaterialScore(BaseModel):
    material_id: UUID
    name: str
    score: float


class MaterialSelectResponse(BaseModel):
    selected: Optional[MaterialScore] = None
    spec: ExtractedSpec
    ranking: List[MaterialScore] = []


class PricebookImportResult(BaseModel):
    ok: bool = True
    name: str
    version: str
    currency: str
    counts: Dict[str, int]


class QuoteFactsResponse(BaseModel):
    quote_no: str
    facts: dict
    stage_pending_bump: bool
