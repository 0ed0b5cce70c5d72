"""アップロード画像の解析（ステータス判定・クロップ矩形・品質評価）。

Pure Pythonで実装（外部ライブラリ依存なし）。
入力は画像の幅・高さのみで、画像のデコードやピクセル処理は行わない。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from card_template_normalizer.domain.template_type import TemplateSpec, validate_dimensions


# アスペクト比一致とみなす相対誤差 (0.5%)
RATIO_TOLERANCE = 0.005

# これを超える相対誤差は非互換 (10%)
MAX_RATIO_DEVIATION = 0.10

# 品質区分の上限 (scale_factor)
QUALITY_EXCELLENT_MAX = 1.0
QUALITY_GOOD_MAX = 1.1
QUALITY_FAIR_MAX = 1.3


class UploadStatus(Enum):
    """アップロード画像の判定結果。"""

    EXACT = "exact"
    CORRECT_RATIO = "correct_ratio"
    WRONG_RATIO = "wrong_ratio"
    TOO_SMALL = "too_small"
    NOT_COMPATIBLE = "not_compatible"


class UploadQuality(Enum):
    """拡大率に基づく品質評価。"""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class CropRect:
    """元画像座標系のクロップ矩形。"""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def as_box(self) -> tuple[int, int, int, int]:
        """Pillow の crop() 用 (left, upper, right, lower) タプル。"""
        return (self.x, self.y, self.right, self.bottom)

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class UploadAnalysis:
    """1回のアップロードに対する解析結果。

    テンプレート仕様の値はコピーして保持する（レジストリへの参照なし）。
    """

    status: UploadStatus
    original_width: int
    original_height: int
    original_ratio: float
    target_width: int
    target_height: int
    target_ratio: float
    ratio_delta: float
    scale_factor: float
    crop_rect: CropRect | None
    quality_rating: UploadQuality
    message: str
    template_id: str
    template_name: str

    @property
    def needs_crop(self) -> bool:
        return self.crop_rect is not None

    @property
    def needs_upscale(self) -> bool:
        return self.scale_factor > 1.0

    @property
    def is_compatible(self) -> bool:
        return self.status != UploadStatus.NOT_COMPATIBLE

    @property
    def upscale_percent(self) -> int:
        """拡大率をパーセント表記 (1.25 → 25)。縮小時は0。"""
        if self.scale_factor <= 1.0:
            return 0
        return round_half_up((self.scale_factor - 1.0) * 100.0)

    @property
    def crop_direction(self) -> str | None:
        """クロップで削る方向 ("sides" / "top/bottom")。

        上端が 0 なら左右クロップとみなす（削る量 0px の場合も含む）。
        """
        if self.crop_rect is None:
            return None
        return "sides" if self.crop_rect.y == 0 else "top/bottom"

    @property
    def crop_amount(self) -> int:
        """クロップで削るピクセル数（両側合計）。"""
        if self.crop_rect is None:
            return 0
        if self.crop_direction == "sides":
            return self.original_width - self.crop_rect.width
        return self.original_height - self.crop_rect.height

    def to_dict(self) -> dict[str, Any]:
        """JSON 化用の辞書。"""
        return {
            "status": self.status.value,
            "original_width": self.original_width,
            "original_height": self.original_height,
            "original_ratio": self.original_ratio,
            "target_width": self.target_width,
            "target_height": self.target_height,
            "target_ratio": self.target_ratio,
            "ratio_delta": self.ratio_delta,
            "scale_factor": self.scale_factor,
            "crop_rect": self.crop_rect.to_dict() if self.crop_rect else None,
            "quality_rating": self.quality_rating.value,
            "message": self.message,
            "template_type_id": self.template_id,
        }


def round_half_up(value: float) -> int:
    """0.5 を切り上げる丸め。

    Python の round() は偶数丸めのため、ピクセル座標には使わない。
    """
    return math.floor(value + 0.5)


# --- 品質評価 ---


def calculate_quality_rating(scale_factor: float) -> UploadQuality:
    """拡大率から品質評価を算出。各区分の上限は含む。"""
    if scale_factor <= QUALITY_EXCELLENT_MAX:
        return UploadQuality.EXCELLENT  # 縮小 or 等倍
    if scale_factor <= QUALITY_GOOD_MAX:
        return UploadQuality.GOOD  # 10%以内の拡大
    if scale_factor <= QUALITY_FAIR_MAX:
        return UploadQuality.FAIR  # 10〜30%の拡大
    return UploadQuality.POOR


# --- クロップ矩形 ---


def calculate_crop_rect(width: int, height: int, target_ratio: float) -> CropRect:
    """目標アスペクト比に合わせた中央クロップ矩形を算出。

    横長すぎる場合は左右を、縦長すぎる場合は上下を削る。
    削るのは常に片方の次元のみ。

    Args:
        width: 元画像の幅
        height: 元画像の高さ
        target_ratio: 目標アスペクト比 (幅/高さ)

    Returns:
        元画像内に収まるクロップ矩形
    """
    width, height = validate_dimensions(width, height)
    if not math.isfinite(target_ratio) or target_ratio <= 0.0:
        raise ValueError(f"target_ratio must be positive, got {target_ratio!r}")

    if width / height > target_ratio:
        crop_width = min(width, max(1, round_half_up(height * target_ratio)))
        x = round_half_up((width - crop_width) / 2)
        return CropRect(x=x, y=0, width=crop_width, height=height)

    crop_height = min(height, max(1, round_half_up(width / target_ratio)))
    y = round_half_up((height - crop_height) / 2)
    return CropRect(x=0, y=y, width=width, height=crop_height)


def adjust_crop_position(
    image_width: int,
    image_height: int,
    crop_width: int,
    crop_height: int,
    new_x: int,
    new_y: int,
) -> CropRect:
    """ユーザーが移動したクロップ枠を、サイズを保ったまま画像内に収める。"""
    crop_width = min(crop_width, image_width)
    crop_height = min(crop_height, image_height)
    max_x = image_width - crop_width
    max_y = image_height - crop_height
    return CropRect(
        x=max(0, min(new_x, max_x)),
        y=max(0, min(new_y, max_y)),
        width=crop_width,
        height=crop_height,
    )


# --- 判定ルール ---


@dataclass(frozen=True)
class Measurements:
    """判定ルールに渡す計測値。"""

    is_exact: bool
    ratio_delta: float
    ratio_matches: bool
    scale_factor: float
    crop_rect: CropRect | None


@dataclass(frozen=True)
class ClassificationRule:
    """ステータス判定ルール。先に一致したルールが優先される。"""

    name: str
    matches: Callable[[Measurements], bool]
    status: UploadStatus


_CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("exact_dimensions", lambda m: m.is_exact, UploadStatus.EXACT),
    ClassificationRule(
        "ratio_out_of_range",
        lambda m: m.ratio_delta > MAX_RATIO_DEVIATION,
        UploadStatus.NOT_COMPATIBLE,
    ),
    # クロップの有無にかかわらず、拡大が必要ならサイズ不足を優先
    ClassificationRule("needs_upscale", lambda m: m.scale_factor > 1.0, UploadStatus.TOO_SMALL),
    ClassificationRule("needs_crop", lambda m: not m.ratio_matches, UploadStatus.WRONG_RATIO),
    ClassificationRule("resize_only", lambda m: True, UploadStatus.CORRECT_RATIO),
)


def classification_rules() -> tuple[ClassificationRule, ...]:
    """優先順のステータス判定ルール。"""
    return _CLASSIFICATION_RULES


def _measure(width: int, height: int, spec: TemplateSpec) -> Measurements:
    target_ratio = spec.target_aspect_ratio
    ratio_delta = abs(width / height - target_ratio) / target_ratio

    if width == spec.target_width and height == spec.target_height:
        return Measurements(True, ratio_delta, True, 1.0, None)

    ratio_matches = ratio_delta <= RATIO_TOLERANCE
    crop_rect: CropRect | None = None
    if ratio_matches or ratio_delta > MAX_RATIO_DEVIATION:
        # 非互換時の拡大率は参考値（処理には使わない）
        scale_factor = spec.target_width / width
    else:
        crop_rect = calculate_crop_rect(width, height, target_ratio)
        scale_factor = spec.target_width / crop_rect.width

    return Measurements(False, ratio_delta, ratio_matches, scale_factor, crop_rect)


def _classify(measurements: Measurements) -> UploadStatus:
    for rule in _CLASSIFICATION_RULES:
        if rule.matches(measurements):
            return rule.status
    raise AssertionError("resize_only rule always matches")


# --- メッセージ ---


def _build_message(analysis: UploadAnalysis) -> str:
    status = analysis.status
    if status == UploadStatus.EXACT:
        return "Perfect! Image matches template specifications exactly."
    if status == UploadStatus.NOT_COMPATIBLE:
        return (
            f"This image's proportions don't match {analysis.template_name}. "
            f"Expected ~{analysis.target_ratio:.2f}:1 ratio, "
            f"got {analysis.original_ratio:.2f}:1."
        )
    if status == UploadStatus.TOO_SMALL:
        if analysis.crop_rect is not None:
            return (
                "Image is smaller than recommended and needs cropping. "
                f"{analysis.upscale_percent}% upscaling will be applied."
            )
        return (
            "Image is smaller than recommended. "
            f"{analysis.upscale_percent}% upscaling may reduce quality."
        )
    if status == UploadStatus.WRONG_RATIO:
        return (
            f"Image will be cropped ({analysis.crop_amount}px from "
            f"{analysis.crop_direction}) and scaled to fit "
            f"{analysis.template_name} dimensions."
        )
    return f"Image will be scaled to {analysis.target_width}×{analysis.target_height}px."


# --- 解析 ---


def analyze_upload(
    original_width: int,
    original_height: int,
    spec: TemplateSpec,
) -> UploadAnalysis:
    """アップロード画像の寸法をテンプレート仕様に照らして解析。

    判定は exact → not_compatible → too_small → wrong_ratio → correct_ratio
    の優先順（classification_rules() 参照）。

    Args:
        original_width: 元画像の幅
        original_height: 元画像の高さ
        spec: 対象テンプレート仕様

    Returns:
        解析結果

    Raises:
        InvalidDimensions: 幅・高さが正の整数でない場合
    """
    width, height = validate_dimensions(original_width, original_height)
    measurements = _measure(width, height, spec)
    status = _classify(measurements)

    if status == UploadStatus.NOT_COMPATIBLE:
        quality = UploadQuality.POOR
    else:
        quality = calculate_quality_rating(measurements.scale_factor)

    draft = UploadAnalysis(
        status=status,
        original_width=width,
        original_height=height,
        original_ratio=width / height,
        target_width=spec.target_width,
        target_height=spec.target_height,
        target_ratio=spec.target_aspect_ratio,
        ratio_delta=measurements.ratio_delta,
        scale_factor=measurements.scale_factor,
        crop_rect=measurements.crop_rect,
        quality_rating=quality,
        message="",
        template_id=spec.id,
        template_name=spec.name,
    )
    return _with_message(draft)


def _with_message(analysis: UploadAnalysis) -> UploadAnalysis:
    # frozen のため message だけ差し替えた新インスタンスを返す
    return replace(analysis, message=_build_message(analysis))
