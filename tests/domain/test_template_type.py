"""template_type.py のテスト。"""

import pytest

from card_template_normalizer.domain.errors import InvalidDimensions, UnknownTemplateSpec
from card_template_normalizer.domain.template_type import (
    CR80_600DPI_SIZE,
    DEFAULT_REGISTRY,
    DEFAULT_TEMPLATE_SPECS,
    PREPAID_CR80,
    SUGGESTED_TAGS,
    WALLET_APPLE,
    TemplateCategory,
    TemplateRegistry,
    TemplateSpec,
    all_suggested_tags,
    validate_dimensions,
)


def _spec(spec_id: str = "test", width: int = 400, height: int = 300) -> TemplateSpec:
    return TemplateSpec(
        id=spec_id,
        name="Test",
        target_width=width,
        target_height=height,
        category=TemplateCategory.DIGITAL,
    )


class TestTemplateSpec:
    def test_aspect_ratio_derived(self) -> None:
        assert PREPAID_CR80.target_aspect_ratio == 1013 / 638
        assert WALLET_APPLE.target_aspect_ratio == 1032 / 336

    def test_aspect_ratio_not_settable_at_init(self) -> None:
        with pytest.raises(TypeError):
            TemplateSpec(  # type: ignore[call-arg]
                id="x", name="x", target_width=10, target_height=5,
                category=TemplateCategory.PHYSICAL, target_aspect_ratio=3.0,
            )

    def test_immutable(self) -> None:
        with pytest.raises(AttributeError):
            PREPAID_CR80.target_width = 10  # type: ignore[misc]

    def test_guide_presets_read_only(self) -> None:
        assert PREPAID_CR80.guide_presets["logo_left"] == 90
        with pytest.raises(TypeError):
            PREPAID_CR80.guide_presets["logo_left"] = 1  # type: ignore[index]

    def test_guide_presets_copied(self) -> None:
        presets = {"safe_area": 10}
        spec = TemplateSpec(
            id="x", name="x", target_width=10, target_height=5,
            category=TemplateCategory.DIGITAL, guide_presets=presets,
        )
        presets["safe_area"] = 99
        assert spec.guide_presets["safe_area"] == 10

    def test_hashable(self) -> None:
        assert len({PREPAID_CR80, PREPAID_CR80}) == 1

    def test_size(self) -> None:
        assert PREPAID_CR80.size == (1013, 638)

    @pytest.mark.parametrize("width,height", [(0, 10), (10, 0), (-1, 10)])
    def test_non_positive_dimensions_rejected(self, width: int, height: int) -> None:
        with pytest.raises(InvalidDimensions):
            _spec(width=width, height=height)


class TestValidateDimensions:
    def test_accepts_positive_ints(self) -> None:
        assert validate_dimensions(10, 20) == (10, 20)

    def test_accepts_integral_float(self) -> None:
        assert validate_dimensions(10.0, 20) == (10, 20)

    @pytest.mark.parametrize(
        "width,height",
        [
            (0, 1),
            (1, -5),
            (1.5, 10),
            (float("nan"), 10),
            (float("inf"), 10),
            (True, 10),
            ("100", 10),
            (None, 10),
        ],
    )
    def test_rejects_invalid(self, width: object, height: object) -> None:
        with pytest.raises(InvalidDimensions) as exc_info:
            validate_dimensions(width, height)
        assert exc_info.value.height == height

    def test_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_dimensions(0, 0)


class TestDefaultSpecs:
    def test_three_default_types(self) -> None:
        ids = [s.id for s in DEFAULT_TEMPLATE_SPECS]
        assert ids == ["prepaid-cr80", "wallet-apple", "wallet-google"]

    def test_cr80_dimensions(self) -> None:
        assert PREPAID_CR80.size == (1013, 638)
        assert PREPAID_CR80.category == TemplateCategory.PHYSICAL

    def test_cr80_600dpi_has_same_ratio(self) -> None:
        w, h = CR80_600DPI_SIZE
        assert w / h == pytest.approx(PREPAID_CR80.target_aspect_ratio)

    def test_wallet_types_digital(self) -> None:
        for spec_id in ("wallet-apple", "wallet-google"):
            spec = DEFAULT_REGISTRY.get(spec_id)
            assert spec.category == TemplateCategory.DIGITAL
            assert spec.size == (1032, 336)


class TestTemplateRegistry:
    def test_get(self) -> None:
        assert DEFAULT_REGISTRY.get("prepaid-cr80") is PREPAID_CR80

    def test_get_unknown_raises(self) -> None:
        with pytest.raises(UnknownTemplateSpec) as exc_info:
            DEFAULT_REGISTRY.get("business-card")
        assert exc_info.value.spec_id == "business-card"
        assert "business-card" in str(exc_info.value)

    def test_unknown_is_key_error(self) -> None:
        with pytest.raises(KeyError):
            DEFAULT_REGISTRY.get("nope")

    def test_all_preserves_order(self) -> None:
        assert DEFAULT_REGISTRY.all() == list(DEFAULT_TEMPLATE_SPECS)

    def test_by_category(self) -> None:
        physical = DEFAULT_REGISTRY.by_category(TemplateCategory.PHYSICAL)
        digital = DEFAULT_REGISTRY.by_category(TemplateCategory.DIGITAL)
        assert [s.id for s in physical] == ["prepaid-cr80"]
        assert [s.id for s in digital] == ["wallet-apple", "wallet-google"]

    def test_contains_and_len(self) -> None:
        assert "wallet-apple" in DEFAULT_REGISTRY
        assert "nope" not in DEFAULT_REGISTRY
        assert len(DEFAULT_REGISTRY) == 3

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ValueError):
            TemplateRegistry([_spec("a"), _spec("a")])

    def test_custom_registry_independent(self) -> None:
        """別レジストリを作っても既定レジストリは変わらない。"""
        custom = TemplateRegistry([_spec("poster", 600, 900)])
        assert custom.ids() == ["poster"]
        assert "poster" not in DEFAULT_REGISTRY

    def test_all_returns_copy(self) -> None:
        specs = DEFAULT_REGISTRY.all()
        specs.clear()
        assert len(DEFAULT_REGISTRY) == 3


class TestSuggestedTags:
    def test_categories(self) -> None:
        assert set(SUGGESTED_TAGS) == {"network", "card_type", "use_case", "style", "status"}

    def test_flatten_order(self) -> None:
        tags = all_suggested_tags()
        assert tags[:4] == ["visa", "mastercard", "amex", "discover"]
        assert tags[-1] == "deprecated"
        assert len(tags) == sum(len(v) for v in SUGGESTED_TAGS.values())
