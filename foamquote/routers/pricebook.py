"""
Pricebook import / export.

POST /api/pricebook/import — validate a full pricebook and store it as a new snapshot
GET  /api/pricebook/export — the active snapshot as JSON
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..errors import PricebookValidationError
from ..pricebook import PriceBook, validate_pricebook
from .deps import get_active_pricebook, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pricebook", tags=["pricebook"])


@router.post("/import", response_model=schemas.PricebookImportResult)
def import_pricebook(payload: Any = Body(...), db: Session = Depends(get_db)):
    """
    Validate and store. All-or-nothing: a payload with any invalid field
    is rejected with every issue listed (422). A (name, version) pair can
    only be stored once — publish changes under a new version.
    """
    try:
        pb = validate_pricebook(payload)
    except PricebookValidationError as e:
        raise http_error(e)

    existing = db.query(models.PriceBookRecord).filter(
        models.PriceBookRecord.name == pb.name,
        models.PriceBookRecord.version == pb.version,
    ).first()
    if existing:
        raise HTTPException(
            status_code=409,
            detail=f"Pricebook '{pb.name}' version {pb.version} already exists — bump the version",
        )

    db.add(models.PriceBookRecord(
        name=pb.name,
        version=pb.version,
        currency=pb.currency,
        notes=pb.notes,
        payload=pb.model_dump(mode="json"),
    ))
    db.commit()
    logger.info("Stored pricebook %s v%s %s", pb.name, pb.version, pb.counts())

    return schemas.PricebookImportResult(
        name=pb.name, version=pb.version, currency=pb.currency, counts=pb.counts(),
    )


@router.get("/export")
def export_pricebook(pb: PriceBook = Depends(get_active_pricebook)):
    return pb.model_dump(mode="json")
