"""アップロード解析ユースケース。

レジストリを DI で注入し、テンプレート種別IDから解析を実行する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from card_template_normalizer.domain.template_type import (
    DEFAULT_REGISTRY,
    TemplateRegistry,
    TemplateSpec,
)
from card_template_normalizer.domain.upload_analysis import (
    UploadAnalysis,
    UploadQuality,
    UploadStatus,
    analyze_upload,
)
from card_template_normalizer.domain.upload_prompt import UploadPrompt, get_upload_prompt

logger = logging.getLogger(__name__)


# 候補の並び順（小さいほど加工が少ない）
_STATUS_PRIORITY: dict[UploadStatus, int] = {
    UploadStatus.EXACT: 0,
    UploadStatus.CORRECT_RATIO: 1,
    UploadStatus.WRONG_RATIO: 2,
    UploadStatus.TOO_SMALL: 3,
    UploadStatus.NOT_COMPATIBLE: 4,
}

_QUALITY_PRIORITY: dict[UploadQuality, int] = {
    UploadQuality.EXCELLENT: 0,
    UploadQuality.GOOD: 1,
    UploadQuality.FAIR: 2,
    UploadQuality.POOR: 3,
}


@dataclass(frozen=True)
class TemplateSuggestion:
    """画像に最も適したテンプレート種別の提案。"""

    suggested: str
    analysis: UploadAnalysis
    alternatives: list[tuple[str, UploadAnalysis]] = field(default_factory=list)


class TemplateUploadAnalyzer:
    """テンプレートアップロード解析サービス。

    状態を持たないため、複数スレッドから同時に呼び出してよい。
    """

    def __init__(self, registry: TemplateRegistry = DEFAULT_REGISTRY) -> None:
        self._registry = registry

    @property
    def registry(self) -> TemplateRegistry:
        return self._registry

    def analyze(self, width: int, height: int, spec_id: str) -> UploadAnalysis:
        """テンプレート種別IDを指定して解析。

        Raises:
            UnknownTemplateSpec: 未登録のIDの場合
            InvalidDimensions: 幅・高さが不正な場合
        """
        return self.analyze_spec(width, height, self._registry.get(spec_id))

    def analyze_spec(self, width: int, height: int, spec: TemplateSpec) -> UploadAnalysis:
        analysis = analyze_upload(width, height, spec)
        logger.debug(
            "Analyzed %s×%s for %s: status=%s scale=%.4f delta=%.4f",
            width, height, spec.id, analysis.status.value,
            analysis.scale_factor, analysis.ratio_delta,
        )
        return analysis

    def prompt(self, analysis: UploadAnalysis) -> UploadPrompt:
        return get_upload_prompt(analysis)

    def suggest_template_type(self, width: int, height: int) -> TemplateSuggestion:
        """加工が最も少なく済むテンプレート種別を提案。

        ステータス優先度→品質評価の順で比較し、同順位は登録順。

        Raises:
            ValueError: レジストリが空の場合
        """
        if len(self._registry) == 0:
            raise ValueError("Template registry is empty")

        analyses = [
            (spec.id, self.analyze_spec(width, height, spec))
            for spec in self._registry
        ]
        analyses.sort(
            key=lambda item: (
                _STATUS_PRIORITY[item[1].status],
                _QUALITY_PRIORITY[item[1].quality_rating],
            ),
        )
        best_id, best = analyses[0]
        return TemplateSuggestion(
            suggested=best_id,
            analysis=best,
            alternatives=analyses[1:],
        )
