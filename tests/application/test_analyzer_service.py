"""analyzer_service.py のテスト。"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from card_template_normalizer.application.analyzer_service import TemplateUploadAnalyzer
from card_template_normalizer.domain.errors import InvalidDimensions, UnknownTemplateSpec
from card_template_normalizer.domain.template_type import (
    DEFAULT_REGISTRY,
    TemplateCategory,
    TemplateRegistry,
    TemplateSpec,
)
from card_template_normalizer.domain.upload_analysis import UploadStatus
from card_template_normalizer.domain.upload_prompt import PromptVariant


def _poster_registry() -> TemplateRegistry:
    return TemplateRegistry([
        TemplateSpec(
            id="poster",
            name="Poster",
            target_width=600,
            target_height=900,
            category=TemplateCategory.PHYSICAL,
        ),
    ])


class TestTemplateUploadAnalyzer:
    def setup_method(self) -> None:
        self.analyzer = TemplateUploadAnalyzer()

    def test_default_registry(self) -> None:
        assert self.analyzer.registry is DEFAULT_REGISTRY

    def test_analyze_by_id(self) -> None:
        a = self.analyzer.analyze(2026, 1276, "prepaid-cr80")
        assert a.status == UploadStatus.CORRECT_RATIO
        assert a.scale_factor == 0.5

    def test_unknown_id(self) -> None:
        with pytest.raises(UnknownTemplateSpec):
            self.analyzer.analyze(1013, 638, "business-card")

    def test_invalid_dimensions(self) -> None:
        with pytest.raises(InvalidDimensions):
            self.analyzer.analyze(0, 638, "prepaid-cr80")

    def test_injected_registry(self) -> None:
        analyzer = TemplateUploadAnalyzer(_poster_registry())
        assert analyzer.analyze(600, 900, "poster").status == UploadStatus.EXACT
        with pytest.raises(UnknownTemplateSpec):
            analyzer.analyze(1013, 638, "prepaid-cr80")

    def test_prompt(self) -> None:
        a = self.analyzer.analyze(600, 600, "prepaid-cr80")
        assert self.analyzer.prompt(a).variant == PromptVariant.ERROR

    def test_concurrent_calls_consistent(self) -> None:
        """状態を持たないため並列呼び出しでも結果が一致する。"""
        sizes = [(800, 500), (2026, 1276), (600, 600), (1013, 638)] * 25
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(
                lambda s: self.analyzer.analyze(s[0], s[1], "prepaid-cr80"), sizes,
            ))
        expected = [self.analyzer.analyze(w, h, "prepaid-cr80") for w, h in sizes]
        assert results == expected


class TestSuggestTemplateType:
    def setup_method(self) -> None:
        self.analyzer = TemplateUploadAnalyzer()

    def test_card_sized_image(self) -> None:
        suggestion = self.analyzer.suggest_template_type(2026, 1276)
        assert suggestion.suggested == "prepaid-cr80"
        assert suggestion.analysis.status == UploadStatus.CORRECT_RATIO
        assert [type_id for type_id, _ in suggestion.alternatives] == [
            "wallet-apple", "wallet-google",
        ]

    def test_wallet_strip_prefers_registration_order(self) -> None:
        suggestion = self.analyzer.suggest_template_type(1032, 336)
        assert suggestion.suggested == "wallet-apple"
        assert suggestion.analysis.status == UploadStatus.EXACT
        alt_ids = [type_id for type_id, _ in suggestion.alternatives]
        assert alt_ids == ["wallet-google", "prepaid-cr80"]
        assert suggestion.alternatives[0][1].status == UploadStatus.EXACT

    def test_quality_breaks_ties(self) -> None:
        registry = TemplateRegistry([
            TemplateSpec(
                id="big", name="Big", target_width=2000, target_height=1000,
                category=TemplateCategory.DIGITAL,
            ),
            TemplateSpec(
                id="medium", name="Medium", target_width=1050, target_height=525,
                category=TemplateCategory.DIGITAL,
            ),
        ])
        suggestion = TemplateUploadAnalyzer(registry).suggest_template_type(1000, 500)
        # 両方 too_small だが medium の方が拡大率が小さい
        assert suggestion.analysis.status == UploadStatus.TOO_SMALL
        assert suggestion.suggested == "medium"

    def test_all_incompatible_still_returns(self) -> None:
        suggestion = self.analyzer.suggest_template_type(500, 500)
        assert suggestion.analysis.status == UploadStatus.NOT_COMPATIBLE
        assert len(suggestion.alternatives) == 2

    def test_empty_registry(self) -> None:
        with pytest.raises(ValueError):
            TemplateUploadAnalyzer(TemplateRegistry([])).suggest_template_type(10, 10)
