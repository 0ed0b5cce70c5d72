"""テンプレート正規化のエラー定義。

`not_compatible` は例外ではなく正常な解析結果として返す。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from card_template_normalizer.domain.upload_analysis import UploadAnalysis


class TemplateNormalizationError(Exception):
    """テンプレート正規化エラーの基底クラス。"""


class InvalidDimensions(TemplateNormalizationError, ValueError):
    """幅・高さが正の整数でない。"""

    def __init__(self, width: object, height: object) -> None:
        self.width = width
        self.height = height
        super().__init__(
            f"Image dimensions must be positive integers, got {width!r}×{height!r}"
        )


class UnknownTemplateSpec(TemplateNormalizationError, KeyError):
    """レジストリに存在しないテンプレート種別ID。"""

    def __init__(self, spec_id: str) -> None:
        self.spec_id = spec_id
        super().__init__(spec_id)

    def __str__(self) -> str:
        # KeyError の repr 表示を避ける
        return f"Unknown template type: {self.spec_id}"


class IncompatibleImage(TemplateNormalizationError):
    """not_compatible 判定をオーバーライドなしで処理しようとした。"""

    def __init__(self, analysis: UploadAnalysis) -> None:
        self.analysis = analysis
        super().__init__(analysis.message)


class ImageDecodeError(TemplateNormalizationError):
    """アップロード画像を Pillow で読み込めない。"""
