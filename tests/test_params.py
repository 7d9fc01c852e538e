"""Tests for node parameter schemas.

Tests for plotflow.graph.params:
    - Every kind has a model
    - camelCase and snake_case spellings both accepted
    - Invalid fields fall back to their defaults individually
    - Non-mapping data yields the all-default model

Run:
    pytest tests/test_params.py -v
"""

from plotflow.graph import PARAM_MODELS, NodeKind, parse_params
from plotflow.graph.params import AttractorParams, CircleParams, RepeatParams


class TestParamModels:
    """Model table and aliases."""

    def test_every_kind_has_a_model(self):
        assert set(PARAM_MODELS) == set(NodeKind)

    def test_camel_case_aliases(self):
        params = parse_params(NodeKind.REPEAT, {"offsetX": 12, "offsetY": 3})
        assert isinstance(params, RepeatParams)
        assert params.offset_x == 12.0
        assert params.offset_y == 3.0

    def test_snake_case_accepted(self):
        params = parse_params(NodeKind.REPEAT, {"offset_x": 7})
        assert params.offset_x == 7.0

    def test_attractor_type_alias(self):
        params = parse_params(NodeKind.ATTRACTOR, {"type": "dejong"})
        assert isinstance(params, AttractorParams)
        assert params.attractor_type == "dejong"

    def test_unknown_keys_ignored(self):
        params = parse_params(NodeKind.CIRCLE, {"radius": 5, "label": "circle", "selected": True})
        assert params.radius == 5.0


class TestFallbacks:
    """Bad values never raise."""

    def test_bad_field_takes_default_others_kept(self):
        params = parse_params(NodeKind.CIRCLE, {"radius": -4, "cx": 12, "segments": 4})
        assert isinstance(params, CircleParams)
        assert params.radius == 20.0
        assert params.cx == 12.0
        assert params.segments == 4

    def test_out_of_range_count(self):
        params = parse_params(NodeKind.REPEAT, {"count": 0})
        assert params.count == 5

    def test_wrong_type(self):
        params = parse_params(NodeKind.LINE, {"x1": "left"})
        assert params.x1 == 10.0

    def test_non_finite_rejected(self):
        params = parse_params(NodeKind.TRANSLATE, {"dx": float("nan")})
        assert params.dx == 10.0

    def test_invalid_color(self):
        params = parse_params(NodeKind.LINE, {"color": 9})
        assert params.color is None

    def test_non_mapping_data(self):
        params = parse_params(NodeKind.GRID, ["not", "a", "mapping"])
        assert params == PARAM_MODELS[NodeKind.GRID]()

    def test_blank_image_data_is_missing(self):
        params = parse_params(NodeKind.IMAGE, {"imageData": ""})
        assert params.image_data is None
