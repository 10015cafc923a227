"""Board session: loaded layers, BOM, localization results and placements.

A session is owned by one caller (a CLI run or an interactive front end).
Localization runs are serialized per session, and a run that was started
before the board was reloaded does not overwrite the newer board's state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from silkscan.board import load_board
from silkscan.core.errors import SessionBusyError, SilkscanError
from silkscan.io import cpl_filename, designator_set, export_cpl, load_bom, read_gerber_archive
from silkscan.localization import DesignatorLocalizer, LocalizationOptions, normalize_designator
from silkscan.models import (
    DesignatorMatch,
    LayerType,
    LocalizationResult,
    LocalizationStatus,
    PlacementRecord,
    RawLayerInput,
    Side,
    UnifiedBoard,
)
from silkscan.transform import pixel_to_board

if TYPE_CHECKING:
    from silkscan.core.interfaces import RecognizerPort
    from silkscan.localization.engine import ProgressCallback
    from silkscan.models import BomItem

logger = logging.getLogger(__name__)


class BoardSession:
    """1枚の基板についての作業状態

    Attributes:
        board: 統合済みのボード
        bom: 読み込まれたBOM行
        bom_filename: BOMのファイル名（CPLファイル名の生成に使う）
        matches: 正規化済み部品記号 -> OCRで見つかった位置
        placements: BOMの部品記号 -> 配置レコード
        native_units: ボード座標の単位
    """

    def __init__(
        self,
        recognizer_factory: Callable[[], RecognizerPort] | None = None,
        options: LocalizationOptions | None = None,
        native_units: str = "in",
    ):
        self.localizer = DesignatorLocalizer(recognizer_factory=recognizer_factory, options=options)
        self.native_units = native_units
        self.board: UnifiedBoard = UnifiedBoard.empty()
        self.bom: list[BomItem] = []
        self.bom_filename = ""
        self.matches: dict[str, DesignatorMatch] = {}
        self.placements: dict[str, PlacementRecord] = {}

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._generation = 0

    # ---- 読み込み ----

    def load_gerber_archive(self, path: str | Path) -> UnifiedBoard:
        """ZIPアーカイブからボードを読み込む"""
        return self.load_layers(read_gerber_archive(path))

    def load_layers(self, raw_inputs: Iterable[RawLayerInput]) -> UnifiedBoard:
        """ファイル群をプロット・統合してボードを置き換える

        以前のボードに対する探索結果は破棄する。
        """
        board = load_board(raw_inputs)
        with self._state_lock:
            self._generation += 1
            self.board = board
            self.matches = {}
        if board.is_empty:
            logger.warning("有効なレイヤーがありません")
        else:
            logger.info(f"ボードを読み込みました: {len(board.layers)}レイヤー, view_box={board.board_space.view_box}")
        return board

    def load_bom(self, path: str | Path) -> list[BomItem]:
        """BOMを読み込む。既存の配置レコードは破棄する"""
        items = load_bom(path)
        with self._state_lock:
            self.bom = items
            self.bom_filename = Path(path).name
            self.placements = {}
        return items

    @property
    def valid_designators(self) -> set[str]:
        return designator_set(self.bom)

    # ---- 探索 ----

    def locate_designators(
        self,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LocalizationResult:
        """シルクスクリーンから部品記号を探索する

        Returns:
            探索結果。実行中にボードが再読み込みされた場合は CANCELLED

        Raises:
            SessionBusyError: 同じセッションで探索が実行中の場合
        """
        if not self._run_lock.acquire(blocking=False):
            raise SessionBusyError("部品記号の探索は既に実行中です")
        try:
            with self._state_lock:
                generation = self._generation
                board = self.board
                valid = self.valid_designators

            result = self.localizer.run(
                board.layers, board.board_space, valid, on_progress=on_progress, cancel_event=cancel_event
            )

            with self._state_lock:
                if generation != self._generation:
                    logger.warning("探索中にボードが再読み込みされたため、結果を破棄します")
                    return LocalizationResult(status=LocalizationStatus.CANCELLED)
                if result.status is not LocalizationStatus.CANCELLED:
                    self.matches = dict(result.matches)
            return result
        finally:
            self._run_lock.release()

    def find_match(self, designator: str) -> DesignatorMatch | None:
        return self.matches.get(normalize_designator(designator))

    def suggested_side(self, designator: str) -> Side:
        """部品の実装面の候補（裏シルクで見つかった部品は裏面）"""
        match = self.find_match(designator)
        if match is not None and match.layer_type is LayerType.BOTTOM_SILKSCREEN:
            return Side.BOTTOM
        return Side.TOP

    # ---- 配置 ----

    def _require_bom_item(self, designator: str) -> str:
        for item in self.bom:
            if item.designator == designator:
                return designator
        raise KeyError(f"BOMに存在しない部品記号です: {designator}")

    def place_from_match(self, designator: str) -> PlacementRecord | None:
        """OCRで見つかった位置に部品を配置する（見つかっていない場合は None）"""
        self._require_bom_item(designator)
        match = self.find_match(designator)
        if match is None:
            return None
        previous = self.placements.get(designator)
        record = PlacementRecord(
            designator=designator,
            x=match.x,
            y=match.y,
            rotation=previous.rotation if previous else 0,
            side=self.suggested_side(designator),
        )
        self.placements[designator] = record
        return record

    def place_from_pixel(
        self,
        designator: str,
        px: float,
        py: float,
        view_scale: float = 1.0,
        offset: tuple[float, float] = (0.0, 0.0),
        side: Side | None = None,
    ) -> PlacementRecord:
        """画面上のクリック位置に部品を配置する

        Args:
            designator: BOMの部品記号
            px: クリック位置X（ピクセル）
            py: クリック位置Y（ピクセル）
            view_scale: 画面のズーム倍率
            offset: 画面のパン量
            side: 実装面（None の場合は探索結果から推定）

        Raises:
            KeyError: BOMに存在しない部品記号の場合
            SilkscanError: ボードが読み込まれていない場合
        """
        self._require_bom_item(designator)
        if self.board.is_empty:
            raise SilkscanError("ボードが読み込まれていません")

        x, y = pixel_to_board(px, py, self.board.board_space, scale=view_scale, offset=offset)
        previous = self.placements.get(designator)
        record = PlacementRecord(
            designator=designator,
            x=x,
            y=y,
            rotation=previous.rotation if previous else 0,
            side=side or self.suggested_side(designator),
        )
        self.placements[designator] = record
        logger.debug(f"{designator} を配置しました: ({x:.4f}, {y:.4f}) {record.side}")
        return record

    def rotate(self, designator: str) -> PlacementRecord:
        """配置済み部品を90度回転する

        Raises:
            KeyError: 未配置の部品の場合
        """
        record = self.placements[designator].rotated()
        self.placements[designator] = record
        return record

    def unplace(self, designator: str) -> None:
        self.placements.pop(designator, None)

    def next_unplaced(self, after: str | None = None) -> str | None:
        """次に配置すべき部品記号

        after より後ろの未配置部品を優先し、なければ先頭から探す。
        """
        designators = [item.designator for item in self.bom]
        start = designators.index(after) + 1 if after in designators else 0
        for designator in designators[start:] + designators[:start]:
            if designator not in self.placements:
                return designator
        return None

    def apply_matches(self) -> int:
        """見つかった部品を全て自動配置する（回転0）

        Returns:
            配置した部品数
        """
        placed = 0
        for item in self.bom:
            match = self.find_match(item.designator)
            if match is None:
                continue
            self.placements[item.designator] = PlacementRecord(
                designator=item.designator,
                x=match.x,
                y=match.y,
                rotation=0,
                side=self.suggested_side(item.designator),
            )
            placed += 1
        logger.info(f"{placed}/{len(self.bom)}部品を自動配置しました")
        return placed

    def placement_records(self) -> dict[str, PlacementRecord]:
        """BOM順の配置レコード"""
        return {item.designator: self.placements[item.designator] for item in self.bom if item.designator in self.placements}

    def export_cpl(self, output_path: str | Path | None = None, display_units: str = "mm") -> Path:
        """配置結果をCPL CSVに書き出す

        output_path を省略した場合はBOMファイル名から生成した名前で
        カレントディレクトリに保存する。
        """
        path = Path(output_path) if output_path else Path(cpl_filename(self.bom_filename))
        return export_cpl(
            self.placement_records(), self.bom, path, display_units=display_units, native_units=self.native_units
        )
