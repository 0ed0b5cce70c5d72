"""実行時設定（pydantic-settings ベース）。

環境変数 (接頭辞 TEMPLATE_NORMALIZER_) または .env から読み込む。
判定しきい値と品質区分は固定ポリシーのため設定対象外。
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class NormalizerSettings(BaseSettings):
    """テンプレート正規化の設定。"""

    model_config = SettingsConfigDict(
        env_prefix="TEMPLATE_NORMALIZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 同時にデコード・リサイズする画像の上限
    max_workers: int = Field(default=2, ge=1)
    default_template_type: str = "prepaid-cr80"
    # クロップ確認プレビューの幅 (px)
    preview_width: int = Field(default=600, ge=1)
    # 正規化画像の保存・エンコード形式 (Pillow のフォーマット名)
    output_format: str = "PNG"
    log_level: LogLevel = "INFO"

    @field_validator("output_format", "log_level", mode="before")
    @classmethod
    def _upper(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


@lru_cache(maxsize=1)
def get_settings() -> NormalizerSettings:
    return NormalizerSettings()
