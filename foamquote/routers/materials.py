"""
Material selection against the active pricebook.

POST /api/materials/select — best material for a spec (or free text)
"""

from fastapi import APIRouter, Depends

from .. import schemas
from ..extract import ExtractedSpec, extract_specs
from ..material_selector import rank_materials, select_material
from ..pricebook import PriceBook
from .deps import get_active_pricebook

router = APIRouter(prefix="/materials", tags=["materials"])


def _score_row(material, score: float) -> schemas.MaterialScore:
    return schemas.MaterialScore(material_id=material.id, name=material.name, score=round(score, 4))


@router.post("/select", response_model=schemas.MaterialSelectResponse)
def select(request: schemas.MaterialSelectRequest, pb: PriceBook = Depends(get_active_pricebook)):
    if request.spec is not None:
        spec = request.spec
    elif request.text:
        spec = extract_specs(request.text)
    else:
        spec = ExtractedSpec()

    candidates = pb.tables.materials
    best = select_material(candidates, spec)
    ranking = [_score_row(m, s) for m, s in rank_materials(candidates, spec)]
    selected = None
    if best is not None:
        selected = next(row for row in ranking if row.material_id == best.id)

    return schemas.MaterialSelectResponse(selected=selected, spec=spec, ranking=ranking)
