"""解析結果からユーザー向けプロンプトを生成。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from card_template_normalizer.domain.upload_analysis import UploadAnalysis, UploadStatus


class PromptVariant(Enum):
    """バナー表示の種別。"""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class UploadPrompt:
    """ステータスバナーの表示内容。"""

    title: str
    description: str
    variant: PromptVariant
    show_preview: bool
    show_crop_adjust: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant.value,
            "show_preview": self.show_preview,
            "show_crop_adjust": self.show_crop_adjust,
        }


def _dims(width: int, height: int) -> str:
    return f"{width}×{height}px"


def get_upload_prompt(analysis: UploadAnalysis) -> UploadPrompt:
    """ステータスに応じたプロンプトを返す。副作用なし。"""
    a = analysis
    original = _dims(a.original_width, a.original_height)
    target = _dims(a.target_width, a.target_height)

    if a.status == UploadStatus.EXACT:
        return UploadPrompt(
            title="Perfect Match",
            description=f"Your image matches the {a.template_name} specifications exactly.",
            variant=PromptVariant.SUCCESS,
            show_preview=False,
            show_crop_adjust=False,
        )

    if a.status == UploadStatus.CORRECT_RATIO:
        return UploadPrompt(
            title="Ready to Scale",
            description=(
                f"Your image is {original}. "
                f"It will be scaled to {target} for {a.template_name}."
            ),
            variant=PromptVariant.INFO,
            show_preview=True,
            show_crop_adjust=False,
        )

    if a.status == UploadStatus.TOO_SMALL:
        return UploadPrompt(
            title="Small Image Warning",
            description=(
                f"Your image is {original}, smaller than the {target} standard. "
                "Upscaling may reduce quality. "
                f"Quality rating: {a.quality_rating.value}."
            ),
            variant=PromptVariant.WARNING,
            show_preview=True,
            show_crop_adjust=a.crop_rect is not None,
        )

    if a.status == UploadStatus.WRONG_RATIO:
        return UploadPrompt(
            title="Crop Required",
            description=(
                f"Your image is {original} ({a.original_ratio:.2f}:1). "
                f"{a.template_name} requires {a.target_ratio:.2f}:1. "
                f"{a.crop_amount}px will be cropped from the {a.crop_direction}."
            ),
            variant=PromptVariant.WARNING,
            show_preview=True,
            show_crop_adjust=True,
        )

    if a.status == UploadStatus.NOT_COMPATIBLE:
        return UploadPrompt(
            title="Not Compatible",
            description=(
                f"This image doesn't appear to be compatible with {a.template_name}. "
                f"Expected aspect ratio: ~{a.target_ratio:.2f}:1. "
                f"Your image: {a.original_ratio:.2f}:1."
            ),
            variant=PromptVariant.ERROR,
            show_preview=False,
            show_crop_adjust=False,
        )

    raise ValueError(f"Unhandled upload status: {a.status!r}")
