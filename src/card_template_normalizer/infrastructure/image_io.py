"""画像I/O（Pillow ベース）。

画像の読み込み、保存、寸法取得、クロップ、リサイズを担当。
配列は (H, W, C) の uint8 (C=3: RGB, C=4: RGBA)。
"""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

from card_template_normalizer.domain.errors import ImageDecodeError
from card_template_normalizer.domain.upload_analysis import CropRect, round_half_up

ImageSource = str | Path | bytes

# EXIF Orientation タグ
_EXIF_ORIENTATION = 0x0112
# 90°/270° 回転を含む Orientation 値（幅と高さが入れ替わる）
_ROTATED_ORIENTATIONS = frozenset({5, 6, 7, 8})

# 段階縮小を行う倍率の閾値
_STEP_DOWN_THRESHOLD = 0.5

_PREVIEW_BORDER_COLOR = (34, 197, 94)


def _open(source: ImageSource) -> Image.Image:
    """パスまたはバイト列から Image を開く（遅延デコード）。"""
    try:
        if isinstance(source, bytes):
            return Image.open(io.BytesIO(source))
        return Image.open(source)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Failed to load image: {e}") from e


def _to_array(img: Image.Image) -> npt.NDArray[np.uint8]:
    """EXIF 回転を適用し、RGB/RGBA 配列に変換。"""
    try:
        img = ImageOps.exif_transpose(img)
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (
            img.mode == "P" and "transparency" in img.info
        )
        img = img.convert("RGBA" if has_alpha else "RGB")
        return np.array(img, dtype=np.uint8)
    except OSError as e:
        raise ImageDecodeError(f"Failed to decode image: {e}") from e


def _from_array(array: npt.NDArray[np.uint8]) -> Image.Image:
    mode = "RGBA" if array.ndim == 3 and array.shape[2] == 4 else "RGB"
    return Image.fromarray(array, mode=mode)


def load_image(path: str | Path) -> npt.NDArray[np.uint8]:
    """画像ファイルを読み込み、配列として返す。

    Args:
        path: 画像ファイルパス (JPEG, PNG等)

    Returns:
        (H, W, 3) または (H, W, 4) の uint8 配列

    Raises:
        ImageDecodeError: 読み込めない場合
    """
    with _open(path) as img:
        return _to_array(img)


def load_image_bytes(data: bytes) -> npt.NDArray[np.uint8]:
    """アップロードされたバイト列を配列として読み込む。"""
    with _open(data) as img:
        return _to_array(img)


def save_image(
    array: npt.NDArray[np.uint8],
    path: str | Path,
    format: str | None = None,
) -> None:
    """配列を画像ファイルとして保存。

    Args:
        array: (H, W, 3) または (H, W, 4) の uint8 配列
        path: 保存先パス
        format: Pillow のフォーマット名。省略時は拡張子から判定
    """
    _from_array(array).save(path, format=format)


def encode_image(array: npt.NDArray[np.uint8], format: str = "PNG") -> bytes:
    """配列をエンコード済みバイト列に変換（ストレージ保存用）。"""
    buf = io.BytesIO()
    _from_array(array).save(buf, format=format)
    return buf.getvalue()


def read_image_dimensions(source: ImageSource) -> tuple[int, int]:
    """ピクセルをデコードせずに画像の (幅, 高さ) を取得。

    EXIF で 90°/270° 回転が指定されている場合は表示上の寸法を返す。

    Raises:
        ImageDecodeError: 画像として認識できない場合
    """
    with _open(source) as img:
        width, height = img.size
        orientation = img.getexif().get(_EXIF_ORIENTATION)
    if orientation in _ROTATED_ORIENTATIONS:
        return height, width
    return width, height


def crop_image(
    array: npt.NDArray[np.uint8],
    rect: CropRect,
) -> npt.NDArray[np.uint8]:
    """矩形で切り出す。

    Raises:
        ValueError: 矩形が画像外にはみ出す場合
    """
    h, w = array.shape[:2]
    if rect.x < 0 or rect.y < 0 or rect.right > w or rect.bottom > h:
        raise ValueError(f"Crop rect {rect} is outside image bounds {w}×{h}")
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError(f"Crop rect {rect} is empty")
    return array[rect.y : rect.bottom, rect.x : rect.right].copy()


def resize_image(
    array: npt.NDArray[np.uint8],
    target_width: int,
    target_height: int,
) -> npt.NDArray[np.uint8]:
    """画像を目標サイズにリサイズ（アスペクト比は維持しない）。

    縮小率が 0.5 未満の場合は、目標の2倍以内になるまで半分ずつ
    縮小してから最終リサイズする（段階縮小）。

    Args:
        array: (H, W, C) の uint8 配列
        target_width: 目標幅
        target_height: 目標高さ

    Returns:
        リサイズ済みの (target_height, target_width, C) uint8 配列
    """
    img = _from_array(array)
    if img.size == (target_width, target_height):
        return array.copy()

    scale = min(target_width / img.width, target_height / img.height)
    if scale < _STEP_DOWN_THRESHOLD:
        while img.width > target_width * 2 and img.height > target_height * 2:
            img = img.reduce(2)

    img = img.resize((target_width, target_height), Image.Resampling.LANCZOS)
    return np.array(img, dtype=np.uint8)


def crop_and_resize(
    array: npt.NDArray[np.uint8],
    rect: CropRect | None,
    target_width: int,
    target_height: int,
) -> npt.NDArray[np.uint8]:
    """クロップ（指定時）→リサイズを一括実行。"""
    if rect is not None:
        array = crop_image(array, rect)
    return resize_image(array, target_width, target_height)


def generate_crop_preview(
    array: npt.NDArray[np.uint8],
    rect: CropRect,
    preview_width: int = 600,
) -> npt.NDArray[np.uint8]:
    """クロップ範囲のプレビュー画像を生成。

    切り落とされる領域を50%暗くし、残る領域を緑枠で囲む。

    Args:
        array: 元画像の (H, W, C) uint8 配列
        rect: 元画像座標系のクロップ矩形
        preview_width: プレビュー幅

    Returns:
        (preview_height, preview_width, 3) の uint8 配列 (RGB)
    """
    h, w = array.shape[:2]
    scale = preview_width / w
    preview_height = max(1, round_half_up(h * scale))

    img = _from_array(array).convert("RGB")
    img = img.resize((preview_width, preview_height), Image.Resampling.LANCZOS)
    preview = np.array(img, dtype=np.float64)

    x0 = round_half_up(rect.x * scale)
    y0 = round_half_up(rect.y * scale)
    x1 = min(preview_width, x0 + round_half_up(rect.width * scale))
    y1 = min(preview_height, y0 + round_half_up(rect.height * scale))

    # 残る領域以外を暗くする
    outside = np.ones((preview_height, preview_width), dtype=bool)
    outside[y0:y1, x0:x1] = False
    preview[outside] *= 0.5

    result = Image.fromarray(np.clip(preview + 0.5, 0, 255).astype(np.uint8), mode="RGB")
    draw = ImageDraw.Draw(result)
    draw.rectangle(
        (x0, y0, max(x0, x1 - 1), max(y0, y1 - 1)),
        outline=_PREVIEW_BORDER_COLOR,
        width=2,
    )
    return np.array(result, dtype=np.uint8)
