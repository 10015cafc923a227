"""Data models for the silkscan board pipeline."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from silkscan.core.errors import ConfigurationError, RecoverableLayerError

if TYPE_CHECKING:
    from silkscan.core.interfaces import VectorGraphic

# 1 native unit = 1000 plotter units
PLOTTER_UNITS_PER_NATIVE = 1000.0


class LayerType(str, Enum):
    """ファブリケーションレイヤーの種別"""

    TOP_COPPER = "Top Copper"
    BOTTOM_COPPER = "Bottom Copper"
    TOP_SILKSCREEN = "Top Silkscreen"
    BOTTOM_SILKSCREEN = "Bottom Silkscreen"
    TOP_SOLDER_MASK = "Top Solder Mask"
    BOTTOM_SOLDER_MASK = "Bottom Solder Mask"
    TOP_PASTE = "Top Solder Paste"
    BOTTOM_PASTE = "Bottom Solder Paste"
    DRILL = "Drill"
    OUTLINE = "Outline"
    OTHER = "Other"

    @property
    def is_silkscreen(self) -> bool:
        return self in (LayerType.TOP_SILKSCREEN, LayerType.BOTTOM_SILKSCREEN)

    @property
    def side(self) -> Side | None:
        """レイヤーが属する面（面を持たないレイヤーはNone）"""
        if self.value.startswith("Top"):
            return Side.TOP
        if self.value.startswith("Bottom"):
            return Side.BOTTOM
        return None

    def __str__(self) -> str:
        return self.value


class Side(str, Enum):
    """部品実装面"""

    TOP = "Top"
    BOTTOM = "Bottom"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BoundingBox:
    """プロッタ単位の軸平行矩形

    Attributes:
        min_x: 左端X
        min_y: 下端Y
        width: 幅
        height: 高さ
    """

    min_x: float
    min_y: float
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.min_x + self.width

    @property
    def max_y(self) -> float:
        return self.min_y + self.height

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0 and self.height > 0)

    def contains(self, other: BoundingBox, tolerance: float = 1e-9) -> bool:
        """otherが完全に内包されているか"""
        return (
            other.min_x >= self.min_x - tolerance
            and other.min_y >= self.min_y - tolerance
            and other.max_x <= self.max_x + tolerance
            and other.max_y <= self.max_y + tolerance
        )

    @classmethod
    def from_extents(cls, min_x: float, min_y: float, max_x: float, max_y: float) -> BoundingBox:
        return cls(min_x, min_y, max_x - min_x, max_y - min_y)


@dataclass(frozen=True)
class BoardCoordinateSpace:
    """全レイヤー共通のボード座標空間

    全レイヤーのローカル矩形を包含する最小の矩形。値はプロッタ単位
    （1/1000ネイティブ単位）で保持する。アップロードごとに1度だけ作成され、
    以後は変更されない。

    Attributes:
        min_x: 左端X（プロッタ単位）
        min_y: 下端Y（プロッタ単位）
        width: 幅（プロッタ単位、正値）
        height: 高さ（プロッタ単位、正値）

    Raises:
        ConfigurationError: 幅または高さが正でない場合
    """

    min_x: float
    min_y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("min_x", "min_y", "width", "height"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ConfigurationError(f"BoardCoordinateSpace.{name} は数値である必要があります: {value!r}")
            if value != value or value in (float("inf"), float("-inf")):
                raise ConfigurationError(f"BoardCoordinateSpace.{name} が有限値ではありません: {value!r}")
        if not (self.width > 0 and self.height > 0):
            raise ConfigurationError(
                f"BoardCoordinateSpace の幅と高さは正である必要があります: width={self.width}, height={self.height}"
            )

    @classmethod
    def from_native(cls, min_x: float, min_y: float, width: float, height: float) -> BoardCoordinateSpace:
        """ネイティブ単位の値から作成する"""
        return cls(
            min_x * PLOTTER_UNITS_PER_NATIVE,
            min_y * PLOTTER_UNITS_PER_NATIVE,
            width * PLOTTER_UNITS_PER_NATIVE,
            height * PLOTTER_UNITS_PER_NATIVE,
        )

    @classmethod
    def from_box(cls, box: BoundingBox) -> BoardCoordinateSpace:
        return cls(box.min_x, box.min_y, box.width, box.height)

    @classmethod
    def coerce(cls, value: Any) -> BoardCoordinateSpace:
        """BoardCoordinateSpace・(minX, minY, w, h) 列・辞書のいずれかを検証して変換する

        Raises:
            ConfigurationError: 形式または値が不正な場合
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(
                    value.get("min_x", value.get("minX")),
                    value.get("min_y", value.get("minY")),
                    value["width"],
                    value["height"],
                )
            except KeyError as e:
                raise ConfigurationError(f"BoardCoordinateSpace の必須キーがありません: {e}") from e
        if isinstance(value, Sequence) and not isinstance(value, str):
            if len(value) != 4:
                raise ConfigurationError(f"BoardCoordinateSpace は4要素である必要があります: {value!r}")
            return cls(*value)
        raise ConfigurationError(f"BoardCoordinateSpace に変換できません: {value!r}")

    @property
    def width_native(self) -> float:
        return self.width / PLOTTER_UNITS_PER_NATIVE

    @property
    def height_native(self) -> float:
        return self.height / PLOTTER_UNITS_PER_NATIVE

    @property
    def y_translate(self) -> float:
        """Y反転の平行移動量（プロッタ単位）"""
        return self.height + 2 * self.min_y

    @property
    def view_box(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.width, self.height)

    def as_box(self) -> BoundingBox:
        return BoundingBox(self.min_x, self.min_y, self.width, self.height)


@dataclass
class RawLayerInput:
    """アップロードされた1ファイル分の生データ"""

    filename: str
    text: str
    extension: str = ""

    def __post_init__(self) -> None:
        if not self.extension and "." in self.filename:
            self.extension = self.filename.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class ParsedLayerGeometry:
    """外部プロッタの出力（ローカル矩形とベクタ図形）"""

    bounding_box: BoundingBox
    graphic: VectorGraphic


@dataclass
class Layer:
    """ボード座標空間に再表現されたレイヤー

    Attributes:
        filename: 元ファイル名
        layer_type: レイヤー種別
        graphic: ボード座標空間に束縛されたベクタ図形
        visible: 表示フラグ（UI側が管理）
    """

    filename: str
    layer_type: LayerType
    graphic: VectorGraphic
    visible: bool = True


@dataclass
class UnifiedBoard:
    """統合結果（レイヤー群とボード座標空間）

    有効なレイヤーが1つもない場合は board_space が None になる。
    """

    layers: list[Layer] = field(default_factory=list)
    board_space: BoardCoordinateSpace | None = None

    @property
    def is_empty(self) -> bool:
        return self.board_space is None

    @classmethod
    def empty(cls) -> UnifiedBoard:
        return cls(layers=[], board_space=None)


@dataclass(frozen=True)
class DesignatorMatch:
    """OCRで見つかった部品記号の位置

    Attributes:
        designator: 正規化済み部品記号（大文字英数字）
        x: ボードX座標（ネイティブ単位）
        y: ボードY座標（ネイティブ単位）
        layer_type: 検出元のシルクレイヤー種別
    """

    designator: str
    x: float
    y: float
    layer_type: LayerType


class LocalizationStatus(str, Enum):
    """部品記号探索の終了状態"""

    DONE = "done"
    EMPTY = "empty"
    CANCELLED = "cancelled"


@dataclass
class LocalizationResult:
    """部品記号探索の結果

    Attributes:
        status: 終了状態
        matches: 部品記号 -> 検出位置
        failed_layers: 処理に失敗したレイヤーのエラー
    """

    status: LocalizationStatus
    matches: dict[str, DesignatorMatch] = field(default_factory=dict)
    failed_layers: list[RecoverableLayerError] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.matches


@dataclass(frozen=True)
class LocalizationProgress:
    """進捗通知（参考情報のみ）"""

    message: str
    completed: int = 0
    total: int = 0


VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass(frozen=True)
class PlacementRecord:
    """CPL出力用の配置レコード

    Attributes:
        designator: 部品記号
        x: X座標（ネイティブ単位）
        y: Y座標（ネイティブ単位）
        rotation: 回転角（0/90/180/270）
        side: 実装面
    """

    designator: str
    x: float
    y: float
    rotation: int = 0
    side: Side = Side.TOP

    def __post_init__(self) -> None:
        if self.rotation not in VALID_ROTATIONS:
            raise ValueError(f"回転角は {VALID_ROTATIONS} のいずれかである必要があります: {self.rotation}")

    def rotated(self) -> PlacementRecord:
        """90度回転したレコードを返す"""
        return replace(self, rotation=(self.rotation + 90) % 360)


@dataclass
class BomItem:
    """BOMの1行"""

    designator: str
    comment: str = ""
    footprint: str = ""
    part_number: str = ""
