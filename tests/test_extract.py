"""
Spec extraction tests — free text to ExtractedSpec.
"""

import pytest

from foamquote.extract import ExtractedSpec, extract_specs


def test_full_request():
    spec = extract_specs("Need 12 x 8 x 2 inserts, qty 50, 1.7 pcf black EPE foam")
    assert spec.dims.length_in == 12
    assert spec.dims.width_in == 8
    assert spec.dims.height_in == 2
    assert spec.qty == 50
    assert spec.density_pcf == 1.7
    assert spec.foam_family == "pe"
    assert spec.color == "black"


def test_lwh_dims_and_units_quantity():
    spec = extract_specs("L=10 W=6 H=3 inches, 250 pcs in grey polyurethane")
    assert (spec.dims.length_in, spec.dims.width_in, spec.dims.height_in) == (10, 6, 3)
    assert spec.qty == 250
    assert spec.foam_family == "pu"
    assert spec.color == "gray"
    assert spec.units_mentioned is True


def test_density_in_lb_ft3():
    assert extract_specs("2.2 lb/ft3 crosslinked").density_pcf == 2.2


def test_under_thickness_mm_converted():
    spec = extract_specs("bottom thickness 25.4 mm please")
    assert spec.thickness_under_in == pytest.approx(1.0)


def test_anti_static_maps_to_pink():
    assert extract_specs("anti-static EVA tray").color == "pink"
    assert extract_specs("anti-static EVA tray").foam_family == "eva"


def test_empty_text_gives_empty_spec():
    spec = extract_specs("")
    assert spec.dims is None
    assert spec.qty is None
    assert spec.density_pcf is None
    assert spec.foam_family is None
    assert spec.color is None
    assert spec.search_words == []


def test_keywords_need_word_boundaries():
    """'pe' inside 'paper' is not a foam family."""
    assert extract_specs("wrapped in paper").foam_family is None


def test_extracted_spec_ignores_unknown_keys():
    spec = ExtractedSpec.model_validate({"density_pcf": 2.0, "tenant": "acme"})
    assert spec.density_pcf == 2.0
    assert not hasattr(spec, "tenant")
