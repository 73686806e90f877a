"""
Shared router dependencies — active pricebook, facts store, error mapping.
"""

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..database import get_db
from ..errors import (
    ConcurrentUpdateError,
    EvaluationError,
    PricebookReferenceError,
    PricebookValidationError,
    PricingError,
)
from ..facts_store import FactsStore, SqlFactsStore
from ..pricebook import PriceBook, validate_pricebook

_facts_store = None


def get_facts_store() -> FactsStore:
    global _facts_store
    if _facts_store is None:
        _facts_store = SqlFactsStore()
    return _facts_store


def latest_record(db: Session):
    return db.query(models.PriceBookRecord).order_by(models.PriceBookRecord.id.desc()).first()


def get_active_pricebook(db: Session = Depends(get_db)) -> PriceBook:
    """Most recently imported snapshot, re-validated."""
    record = latest_record(db)
    if record is None:
        raise HTTPException(status_code=404, detail="No pricebook loaded — POST /api/pricebook/import first")
    try:
        return validate_pricebook(record.payload)
    except PricebookValidationError as e:
        raise HTTPException(status_code=500, detail={"error": "Stored pricebook is invalid", "issues": e.issues})


def http_error(e: PricingError) -> HTTPException:
    """Map a pricing error to the HTTP status the caller should see."""
    if isinstance(e, PricebookValidationError):
        return HTTPException(status_code=422, detail={"ok": False, "issues": e.issues})
    if isinstance(e, PricebookReferenceError):
        return HTTPException(status_code=404, detail={
            "ok": False, "error": str(e), "kind": e.kind, "ref_id": e.ref_id, "path": e.path,
        })
    if isinstance(e, EvaluationError):
        return HTTPException(status_code=400, detail={"ok": False, "error": str(e), "rule_id": e.rule_id})
    if isinstance(e, ConcurrentUpdateError):
        return HTTPException(status_code=409, detail={"ok": False, "error": str(e)})
    return HTTPException(status_code=400, detail={"ok": False, "error": str(e)})
