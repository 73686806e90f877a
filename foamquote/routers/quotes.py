"""
Quote pricing and revision flag.

POST /api/quotes/calc               — price line items against the active pricebook
POST /api/quotes/{quote_no}/revise  — queue a revision (stage_pending_bump = true)
GET  /api/quotes/{quote_no}/facts   — current facts record for a quote
"""

from fastapi import APIRouter, Depends

from .. import schemas
from ..errors import PricingError
from ..facts_store import FactsStore, mark_pending_revision
from ..pricebook import PriceBook
from ..quote_engine import QuoteEngine
from .deps import get_active_pricebook, get_facts_store, http_error

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("/calc", response_model=schemas.PricedQuote)
def calc_quote(
    request: schemas.QuoteCalcRequest,
    pb: PriceBook = Depends(get_active_pricebook),
    store: FactsStore = Depends(get_facts_store),
):
    engine = QuoteEngine(pb, facts_store=store)
    try:
        return engine.build_priced_quote(request.quote_no, request.items, request.markup_pct)
    except PricingError as e:
        raise http_error(e)


@router.post("/{quote_no}/revise")
def revise_quote(quote_no: str, store: FactsStore = Depends(get_facts_store)):
    mark_pending_revision(store, quote_no)
    return {"ok": True}


@router.get("/{quote_no}/facts", response_model=schemas.QuoteFactsResponse)
def get_facts(quote_no: str, store: FactsStore = Depends(get_facts_store)):
    facts = store.load(quote_no)
    return schemas.QuoteFactsResponse(
        quote_no=quote_no,
        facts=facts.payload(),
        stage_pending_bump=facts.stage_pending_bump,
    )
