"""
Spec extraction — turns a customer's free-form request into an ExtractedSpec.

Regex + keyword dictionaries only. No AI. The result is untrusted and
partially populated; every field may be missing.

Input: raw request text ("12 x 8 x 2 insert, qty 50, 1.7 pcf black EPE")
Output: ExtractedSpec
"""

import logging
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_NUM = r"(\d+(?:\.\d+)?)"

PATTERNS = {
    "dims_x": re.compile(rf"\b{_NUM}\s*(?:in|\")?\s*[x×]\s*{_NUM}\s*(?:in|\")?\s*[x×]\s*{_NUM}", re.I),
    "dims_lwh": re.compile(rf"\bL\s*=?\s*{_NUM}\b.*\bW\s*=?\s*{_NUM}\b.*\bH\s*=?\s*{_NUM}", re.I),
    "qty": re.compile(r"\bqty\s*[:=]?\s*(\d+)\b", re.I),
    "qty_units": re.compile(r"\b(\d{1,6})\s*(?:pcs|pieces|units|ea)\b", re.I),
    "density_lb_ft3": re.compile(rf"\b{_NUM}\s*(?:lb|lbs|pounds?)\s*/?\s*(?:ft3|cu\.?\s*ft)", re.I),
    "density_pcf": re.compile(rf"\b{_NUM}\s*pcf\b", re.I),
    "thickness_under": re.compile(
        rf"\b(?:thickness|under|bottom)\b.*?\b{_NUM}\s*(in|inch|inches|mm|millimeters?)\b", re.I
    ),
    "units": re.compile(r"\b(?:mm|millimeters?|in|inch|inches)\b", re.I),
}

# Checked in order, first hit wins
FAMILY_WORDS = {
    "pe": ["polyethylene", "crosslinked pe", "cross-linked pe", "xlpe", "epe", "pe"],
    "pu": ["polyurethane", "urethane", "foam rubber", "pu"],
    "eva": ["eva"],
}

COLOR_WORDS = {
    "black": ["black", "blk"],
    "white": ["white", "wht"],
    "gray": ["gray", "grey", "gry"],
    "blue": ["blue"],
    "pink": ["anti-static", "anti static", "antistatic", "pink"],
}

MM_PER_INCH = 25.4


class Dims(BaseModel):
    length_in: float
    width_in: float
    height_in: float


class ExtractedSpec(BaseModel):
    """Normalized attributes from a customer request. Unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore")

    density_pcf: Optional[float] = None
    foam_family: Optional[str] = None
    color: Optional[str] = None
    dims: Optional[Dims] = None
    qty: Optional[int] = None
    thickness_under_in: Optional[float] = None
    units_mentioned: bool = False
    search_words: List[str] = []


def _find_keyword(text: str, table: dict) -> Optional[str]:
    """Word-boundary keyword lookup; returns the table key."""
    for key, words in table.items():
        for word in words:
            if re.search(rf"(?<![a-z]){re.escape(word)}(?![a-z])", text):
                return key
    return None


def extract_specs(raw_text: str) -> ExtractedSpec:
    """Pull dims, quantity, density, foam family and color out of free text."""
    text = raw_text or ""
    lowered = text.lower()
    found = {"units_mentioned": bool(PATTERNS["units"].search(text))}

    m = PATTERNS["dims_x"].search(text) or PATTERNS["dims_lwh"].search(text)
    if m:
        found["dims"] = {
            "length_in": float(m.group(1)),
            "width_in": float(m.group(2)),
            "height_in": float(m.group(3)),
        }

    q = PATTERNS["qty"].search(text) or PATTERNS["qty_units"].search(text)
    if q:
        found["qty"] = int(q.group(1))

    d = PATTERNS["density_lb_ft3"].search(text) or PATTERNS["density_pcf"].search(text)
    if d:
        found["density_pcf"] = float(d.group(1))

    t = PATTERNS["thickness_under"].search(text)
    if t:
        value = float(t.group(1))
        if t.group(2).lower().startswith("m"):
            value = round(value / MM_PER_INCH, 3)
        found["thickness_under_in"] = value

    found["foam_family"] = _find_keyword(lowered, FAMILY_WORDS)
    found["color"] = _find_keyword(lowered, COLOR_WORDS)
    found["search_words"] = [
        w for w in (found["foam_family"], found["color"]) if w
    ]

    spec = ExtractedSpec(**found)
    logger.debug("Extracted spec from %d chars: %s", len(text), spec.model_dump(exclude_none=True))
    return spec
