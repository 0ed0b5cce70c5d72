"""テンプレート種別（出力フォーマット）の定義とレジストリ。

Pure Pythonで実装（外部ライブラリ依存なし）。
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from card_template_normalizer.domain.errors import InvalidDimensions, UnknownTemplateSpec


class TemplateCategory(Enum):
    """テンプレートの区分。"""

    PHYSICAL = "physical"
    DIGITAL = "digital"


def validate_dimensions(width: object, height: object) -> tuple[int, int]:
    """幅・高さが正の整数であることを検証。

    bool は int のサブクラスだが寸法としては受け付けない。
    整数値の float (例: 1013.0) は int に変換して受け付ける。

    Raises:
        InvalidDimensions: 0以下、非整数、NaN/inf の場合
    """
    checked: list[int] = []
    for value in (width, height):
        if isinstance(value, bool):
            raise InvalidDimensions(width, height)
        if isinstance(value, float):
            if not math.isfinite(value) or not value.is_integer():
                raise InvalidDimensions(width, height)
            value = int(value)
        if not isinstance(value, numbers.Integral) or value <= 0:
            raise InvalidDimensions(width, height)
        checked.append(int(value))
    return checked[0], checked[1]


@dataclass(frozen=True)
class TemplateSpec:
    """1つの出力フォーマットの仕様。

    target_aspect_ratio は幅/高さから生成時に算出する（外部から指定不可）。
    """

    id: str
    name: str
    target_width: int
    target_height: int
    category: TemplateCategory
    description: str = ""
    guide_presets: Mapping[str, int] = field(default_factory=dict, compare=False)
    target_aspect_ratio: float = field(init=False)

    def __post_init__(self) -> None:
        width, height = validate_dimensions(self.target_width, self.target_height)
        object.__setattr__(self, "target_width", width)
        object.__setattr__(self, "target_height", height)
        object.__setattr__(self, "target_aspect_ratio", width / height)
        object.__setattr__(
            self, "guide_presets", MappingProxyType(dict(self.guide_presets)),
        )

    @property
    def size(self) -> tuple[int, int]:
        return (self.target_width, self.target_height)


# --- 既定のテンプレート種別 ---

PREPAID_CR80 = TemplateSpec(
    id="prepaid-cr80",
    name="Prepaid Card (CR80)",
    target_width=1013,
    target_height=638,
    category=TemplateCategory.PHYSICAL,
    description=(
        "Standard credit card size for prepaid, gift, and payment cards. "
        "Print-ready at 300 DPI."
    ),
    guide_presets={"logo_left": 90, "logo_top": 107, "midpoint": 384},
)

WALLET_APPLE = TemplateSpec(
    id="wallet-apple",
    name="Apple Wallet",
    target_width=1032,
    target_height=336,
    category=TemplateCategory.DIGITAL,
    description=(
        "Hero/strip image for Apple Wallet passes. "
        "Used for loyalty cards, gift cards, and coupons."
    ),
    guide_presets={"logo_zone_right": 200, "safe_area": 50},
)

WALLET_GOOGLE = TemplateSpec(
    id="wallet-google",
    name="Google Wallet",
    target_width=1032,
    target_height=336,
    category=TemplateCategory.DIGITAL,
    description=(
        "Hero image for Google Wallet passes. "
        "Same dimensions as Apple Wallet for cross-platform compatibility."
    ),
    guide_presets={"logo_zone_right": 200, "safe_area": 50},
)

DEFAULT_TEMPLATE_SPECS: tuple[TemplateSpec, ...] = (
    PREPAID_CR80, WALLET_APPLE, WALLET_GOOGLE,
)


# --- CR80 物理寸法 (3.375" × 2.125") ---

CR80_WIDTH_INCHES = 3.375
CR80_HEIGHT_INCHES = 2.125
CR80_WIDTH_MM = 85.6
CR80_HEIGHT_MM = 53.98
CR80_300DPI_SIZE = (PREPAID_CR80.target_width, PREPAID_CR80.target_height)
CR80_600DPI_SIZE = (2026, 1276)


class TemplateRegistry:
    """テンプレート種別の読み取り専用レジストリ。

    生成時に一度だけ構築し、以降は変更しない。
    アナライザにはコンストラクタ経由で注入する。
    """

    def __init__(self, specs: Iterable[TemplateSpec]) -> None:
        by_id: dict[str, TemplateSpec] = {}
        for spec in specs:
            if spec.id in by_id:
                raise ValueError(f"Duplicate template type id: {spec.id}")
            by_id[spec.id] = spec
        self._specs: Mapping[str, TemplateSpec] = MappingProxyType(by_id)

    def get(self, spec_id: str) -> TemplateSpec:
        """IDからテンプレート種別を取得。

        Raises:
            UnknownTemplateSpec: 未登録のIDの場合
        """
        try:
            return self._specs[spec_id]
        except KeyError:
            raise UnknownTemplateSpec(spec_id) from None

    def all(self) -> list[TemplateSpec]:
        """登録順の全テンプレート種別。"""
        return list(self._specs.values())

    def by_category(self, category: TemplateCategory) -> list[TemplateSpec]:
        return [s for s in self._specs.values() if s.category == category]

    def ids(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, spec_id: object) -> bool:
        return spec_id in self._specs

    def __iter__(self) -> Iterator[TemplateSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


DEFAULT_REGISTRY = TemplateRegistry(DEFAULT_TEMPLATE_SPECS)


# --- タグ候補 ---

SUGGESTED_TAGS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "network": ("visa", "mastercard", "amex", "discover"),
    "card_type": ("debit", "credit", "prepaid", "gift", "reward", "payroll"),
    "use_case": ("disbursement", "incentive", "loyalty", "employee"),
    "style": ("minimal", "gradient", "photo", "branded", "dark", "light"),
    "status": ("draft", "approved", "deprecated"),
})


def all_suggested_tags() -> list[str]:
    """タグ候補をカテゴリ順に平坦化して返す。"""
    return [tag for tags in SUGGESTED_TAGS.values() for tag in tags]
