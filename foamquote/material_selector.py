"""
Material selector — picks the best raw material for an under-constrained spec.

Additive score, higher is better:
    density   max(0, 10 - 10 * |candidate - target|)   both densities present
    family    +3  family keyword is a substring of the material name
    color     +2  exact case-folded color match
    price     1 / (1 + price_per_ci)                    positive price only

The family match is a plain substring test with no word boundaries, so
"pe" matches "XLPE" and "EPE Foam".

Selection is a single greedy pass; first-seen wins ties.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .extract import ExtractedSpec
from .pricebook import Material

logger = logging.getLogger(__name__)

DENSITY_WEIGHT = 10.0
FAMILY_POINTS = 3.0
COLOR_POINTS = 2.0


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def density_score(candidate_density: Optional[float], target_density: Optional[float]) -> float:
    if candidate_density is None or target_density is None:
        return 0.0
    delta = abs(float(candidate_density) - float(target_density))
    return max(0.0, DENSITY_WEIGHT - DENSITY_WEIGHT * delta)


def price_tiebreak(price_per_ci) -> float:
    if price_per_ci is None:
        return 0.0
    price = float(price_per_ci)
    return 1.0 / (1.0 + price) if price > 0 else 0.0


def score_material(candidate: Material, target: Optional[ExtractedSpec]) -> float:
    """Score one candidate against the extracted target spec."""
    score = price_tiebreak(candidate.price_per_ci)
    if target is None:
        return score

    score += density_score(candidate.density_lb_ft3, target.density_pcf)

    family = _norm(target.foam_family)
    if family and family in _norm(candidate.name):
        score += FAMILY_POINTS

    color = _norm(target.color)
    if color and _norm(candidate.color) == color:
        score += COLOR_POINTS

    return score


def select_material(
    candidates: Sequence[Material],
    target: Optional[ExtractedSpec],
) -> Optional[Material]:
    """
    Highest-scoring candidate, or None when there are no candidates.
    Deterministic — ties keep the earliest candidate.
    """
    best = None
    best_score = 0.0
    for candidate in candidates:
        score = score_material(candidate, target)
        if best is None or score > best_score:
            best, best_score = candidate, score

    if best is not None:
        logger.debug("Selected material %s (%s) score=%.4f", best.name, best.id, best_score)
    return best


def rank_materials(
    candidates: Iterable[Material],
    target: Optional[ExtractedSpec],
) -> List[Tuple[Material, float]]:
    """All candidates with scores, best first. Stable for equal scores."""
    scored = [(c, score_material(c, target)) for c in candidates]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)
