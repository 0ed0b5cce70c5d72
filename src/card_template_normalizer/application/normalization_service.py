"""テンプレート正規化パイプライン。

寸法取得→解析→（非互換なら拒否）→クロップ→リサイズの一連処理。
進捗コールバック対応。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

import numpy as np
import numpy.typing as npt

from card_template_normalizer.application.analyzer_service import TemplateUploadAnalyzer
from card_template_normalizer.domain.errors import IncompatibleImage
from card_template_normalizer.domain.upload_analysis import (
    CropRect,
    UploadAnalysis,
    UploadQuality,
    UploadStatus,
    adjust_crop_position,
    calculate_quality_rating,
)
from card_template_normalizer.infrastructure.image_io import (
    crop_and_resize,
    encode_image,
    generate_crop_preview,
    load_image,
    load_image_bytes,
    save_image,
)
from card_template_normalizer.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[str, float], None]
"""進捗コールバック: (stage_name, progress_0_to_1)"""


@dataclass
class NormalizedTemplate:
    """正規化済みテンプレート画像と保存用メタデータ。"""

    image: npt.NDArray[np.uint8]
    analysis: UploadAnalysis
    crop_rect: CropRect | None
    forced: bool = False

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def original_width(self) -> int:
        return self.analysis.original_width

    @property
    def original_height(self) -> int:
        return self.analysis.original_height

    @property
    def scale_factor(self) -> float:
        """実際に適用した拡大率 (目標幅 / 使用した元領域の幅)。"""
        source_width = self.crop_rect.width if self.crop_rect else self.original_width
        return self.width / source_width

    @property
    def upload_quality(self) -> UploadQuality:
        """実際に適用した拡大率に対する品質評価。

        解析時と異なるクロップ矩形を使った場合は拡大率から再評価する。
        強制処理した非互換画像は解析時の評価 (poor) のまま。
        """
        if self.forced or self.crop_rect == self.analysis.crop_rect:
            return self.analysis.quality_rating
        return calculate_quality_rating(self.scale_factor)

    def metadata(self) -> dict[str, Any]:
        """テンプレートレコードに保存する値。"""
        return {
            "template_type_id": self.analysis.template_id,
            "width": self.width,
            "height": self.height,
            "original_width": self.original_width,
            "original_height": self.original_height,
            "scale_factor": self.scale_factor,
            "upload_quality": self.upload_quality.value,
        }


class TemplateNormalizer:
    """テンプレート正規化サービス。

    max_workers はバッチ処理で同時にデコードする画像数の上限。
    省略した引数は get_settings() の値を使う。
    """

    def __init__(
        self,
        analyzer: TemplateUploadAnalyzer | None = None,
        max_workers: int | None = None,
        output_format: str | None = None,
        preview_width: int | None = None,
    ) -> None:
        settings = get_settings()
        self._analyzer = analyzer or TemplateUploadAnalyzer()
        self._max_workers = max_workers or settings.max_workers
        self._output_format = output_format or settings.output_format
        self._preview_width = preview_width or settings.preview_width

    @property
    def analyzer(self) -> TemplateUploadAnalyzer:
        return self._analyzer

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def preview_width(self) -> int:
        return self._preview_width

    def preview(
        self,
        image: npt.NDArray[np.uint8],
        spec_id: str,
        crop_rect: CropRect | None = None,
    ) -> npt.NDArray[np.uint8]:
        """クロップ確認用のプレビュー画像を生成。

        crop_rect 省略時は解析結果の矩形、クロップ不要なら画像全体を枠で囲む。
        """
        height, width = image.shape[:2]
        rect = crop_rect
        if rect is None:
            rect = self._analyzer.analyze(width, height, spec_id).crop_rect
        if rect is None:
            rect = CropRect(x=0, y=0, width=width, height=height)
        else:
            rect = adjust_crop_position(
                width, height, rect.width, rect.height, rect.x, rect.y,
            )
        return generate_crop_preview(image, rect, self._preview_width)

    def encode(self, normalized: NormalizedTemplate) -> bytes:
        """正規化結果を設定の出力フォーマットでエンコード。"""
        return encode_image(normalized.image, self._output_format)

    def normalize_array(
        self,
        image: npt.NDArray[np.uint8],
        spec_id: str,
        force: bool = False,
        crop_rect: CropRect | None = None,
        progress: ProgressCallback | None = None,
    ) -> NormalizedTemplate:
        """画像配列をテンプレート仕様に正規化。

        Args:
            image: (H, W, C) の uint8 配列
            spec_id: テンプレート種別ID
            force: not_compatible でも処理する（"Use anyway"）
            crop_rect: ユーザーが調整したクロップ矩形（画像内に収めて使用）
            progress: 進捗コールバック

        Returns:
            正規化結果

        Raises:
            IncompatibleImage: not_compatible かつ force=False の場合
            UnknownTemplateSpec: 未登録のIDの場合
        """
        if progress:
            progress("解析", 0.1)

        height, width = image.shape[:2]
        analysis = self._analyzer.analyze(width, height, spec_id)

        if analysis.status == UploadStatus.NOT_COMPATIBLE:
            if not force:
                logger.warning(
                    "Rejected %s×%s upload for %s: %s",
                    width, height, spec_id, analysis.message,
                )
                raise IncompatibleImage(analysis)
            logger.warning(
                "Processing incompatible %s×%s upload for %s (override)",
                width, height, spec_id,
            )

        rect = analysis.crop_rect
        if crop_rect is not None:
            rect = adjust_crop_position(
                width, height, crop_rect.width, crop_rect.height,
                crop_rect.x, crop_rect.y,
            )

        if analysis.status == UploadStatus.EXACT and rect is None:
            result = image.copy()
        else:
            if progress:
                progress("クロップ・リサイズ", 0.4)
            result = crop_and_resize(
                image, rect, analysis.target_width, analysis.target_height,
            )

        if progress:
            progress("完了", 1.0)

        normalized = NormalizedTemplate(
            image=result,
            analysis=analysis,
            crop_rect=rect,
            forced=force and not analysis.is_compatible,
        )
        logger.info(
            "Normalized %s×%s → %s×%s for %s (status=%s, quality=%s)",
            width, height, normalized.width, normalized.height, spec_id,
            analysis.status.value, normalized.upload_quality.value,
        )
        return normalized

    def normalize_file(
        self,
        input_path: str | Path,
        spec_id: str,
        force: bool = False,
        crop_rect: CropRect | None = None,
        progress: ProgressCallback | None = None,
    ) -> NormalizedTemplate:
        """画像ファイルを正規化。"""
        if progress:
            progress("読み込み", 0.0)
        image = load_image(input_path)
        return self.normalize_array(image, spec_id, force, crop_rect, progress)

    def normalize_bytes(
        self,
        data: bytes,
        spec_id: str,
        force: bool = False,
        crop_rect: CropRect | None = None,
        progress: ProgressCallback | None = None,
    ) -> NormalizedTemplate:
        """アップロードされたバイト列を正規化。"""
        if progress:
            progress("読み込み", 0.0)
        image = load_image_bytes(data)
        return self.normalize_array(image, spec_id, force, crop_rect, progress)

    def normalize_and_save(
        self,
        input_path: str | Path,
        output_path: str | Path,
        spec_id: str,
        force: bool = False,
        crop_rect: CropRect | None = None,
        progress: ProgressCallback | None = None,
    ) -> NormalizedTemplate:
        """画像を正規化し、設定の出力フォーマットで保存。"""
        normalized = self.normalize_file(input_path, spec_id, force, crop_rect, progress)
        save_image(normalized.image, output_path, format=self._output_format)
        return normalized

    def normalize_many(
        self,
        input_paths: Sequence[str | Path],
        spec_id: str,
        force: bool = False,
    ) -> list[NormalizedTemplate]:
        """複数ファイルを並列に正規化。結果は入力順。

        同時処理数は max_workers で制限する。1件でも失敗すると例外を送出。
        """
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            return list(executor.map(
                lambda path: self.normalize_file(path, spec_id, force),
                input_paths,
            ))
