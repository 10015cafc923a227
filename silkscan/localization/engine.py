"""Designator localization engine.

Collects the silkscreen layers of a unified board, rasterizes and
binarizes each one, runs OCR on the upright raster and on a copy rotated
90 degrees clockwise, keeps tokens that look like BOM designators, and
maps them back to board coordinates.

Rasterization and both OCR passes run on a bounded thread pool. Results
are merged after every task has settled, in a fixed order (Top
Silkscreen before Bottom Silkscreen, upright pass before rotated pass),
so the mapping never depends on completion order. The first acceptance
of a designator wins.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from silkscan.core.errors import RecoverableLayerError
from silkscan.localization.designator_filter import DEFAULT_MIN_TOKEN_LENGTH, DesignatorFilter
from silkscan.localization.raster import (
    DEFAULT_BINARIZE_THRESHOLD,
    DEFAULT_MAX_SCALE,
    DEFAULT_TARGET_RESOLUTION,
    RasterGeometry,
    binarize,
    raster_to_board,
    rasterize_layer,
    rotate_clockwise,
    unrotate_point,
)
from silkscan.models import (
    BoardCoordinateSpace,
    DesignatorMatch,
    LayerType,
    LocalizationProgress,
    LocalizationResult,
    LocalizationStatus,
)
from silkscan.ocr import SerializedRecognizer, create_recognizer
from silkscan.utils.performance_monitor import PerformanceMonitor

if TYPE_CHECKING:
    import numpy as np

    from silkscan.core.interfaces import RecognizerPort
    from silkscan.models import Layer

logger = logging.getLogger(__name__)

# 走査順: 表シルク -> 裏シルク
SILKSCREEN_ORDER = {LayerType.TOP_SILKSCREEN: 0, LayerType.BOTTOM_SILKSCREEN: 1}

ProgressCallback = Callable[[LocalizationProgress], Any]


class RecognitionPass(IntEnum):
    """OCRパス（値は回転角）"""

    UPRIGHT = 0
    ROTATED = 90


@dataclass(frozen=True)
class LocalizationOptions:
    """部品記号探索の設定

    Attributes:
        target_resolution: ラスタ長辺の目標ピクセル数
        max_scale: 1プロッタ単位あたりのピクセル数の上限
        binarize_threshold: 二値化閾値
        min_token_length: 受理するトークンの最小文字数
        max_workers: ワーカースレッド数（None の場合はCPU数）
        rotated_pass: 90度回転パスを実行するか
    """

    target_resolution: int = DEFAULT_TARGET_RESOLUTION
    max_scale: float = DEFAULT_MAX_SCALE
    binarize_threshold: int = DEFAULT_BINARIZE_THRESHOLD
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH
    max_workers: int | None = None
    rotated_pass: bool = True

    @property
    def passes(self) -> tuple[RecognitionPass, ...]:
        if self.rotated_pass:
            return (RecognitionPass.UPRIGHT, RecognitionPass.ROTATED)
        return (RecognitionPass.UPRIGHT,)

    def resolve_workers(self) -> int:
        return max(1, self.max_workers or os.cpu_count() or 1)


@dataclass(frozen=True)
class _Candidate:
    designator: str
    x: float
    y: float


class _RunCancelled(Exception):
    """協調的キャンセル（内部用）"""


class _ProgressReporter:
    """進捗通知。コールバックの例外はエンジンの処理を止めない"""

    def __init__(self, callback: ProgressCallback | None, total: int):
        self.callback = callback
        self.total = total
        self.completed = 0

    def report(self, message: str, advance: int = 0) -> None:
        self.completed = min(self.total, self.completed + advance)
        if self.callback is None:
            return
        try:
            self.callback(LocalizationProgress(message=message, completed=self.completed, total=self.total))
        except Exception as e:
            logger.warning(f"進捗コールバックでエラーが発生しました（無視します）: {e}")


def _default_recognizer_factory() -> RecognizerPort:
    return create_recognizer("tesseract")


class DesignatorLocalizer:
    """シルクスクリーン上の部品記号の位置を探索するエンジン

    インスタンスは実行ごとの状態を持たないため、同じインスタンスで
    複数の実行が重なっても結果が混ざることはない。OCRエンジンとラスタは
    実行ごとに生成され、全ての終了経路で解放される。

    Attributes:
        recognizer_factory: 実行ごとに認識器を生成する関数
        options: 探索設定
        monitor: 処理時間の計測器
    """

    def __init__(
        self,
        recognizer_factory: Callable[[], RecognizerPort] | None = None,
        options: LocalizationOptions | None = None,
        monitor: PerformanceMonitor | None = None,
    ):
        self.recognizer_factory = recognizer_factory or _default_recognizer_factory
        self.options = options or LocalizationOptions()
        self.monitor = monitor or PerformanceMonitor()

    def run(
        self,
        layers: Sequence[Layer],
        board_space: Any,
        valid_designators: Iterable[str] = (),
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> LocalizationResult:
        """部品記号を探索する

        Args:
            layers: 統合済みレイヤー
            board_space: ボード座標空間（None の場合は空の結果）
            valid_designators: BOM由来の有効部品記号（空の場合は全トークンを受理）
            on_progress: 進捗コールバック
            cancel_event: セットされると層/パスの境界で処理を中断する

        Returns:
            探索結果

        Raises:
            ConfigurationError: board_space または設定が不正な場合
        """
        if board_space is None:
            logger.warning("ボード座標空間がありません。部品記号の探索をスキップします。")
            return LocalizationResult(status=LocalizationStatus.EMPTY)
        space = BoardCoordinateSpace.coerce(board_space)

        silkscreen = self._collect_silkscreen_layers(layers)
        if not silkscreen:
            logger.warning("シルクスクリーンレイヤーがありません。部品記号の探索をスキップします。")
            return LocalizationResult(status=LocalizationStatus.EMPTY)

        designator_filter = DesignatorFilter(valid_designators, min_length=self.options.min_token_length)
        geometry = RasterGeometry.for_board(space, self.options.target_resolution, self.options.max_scale)
        passes = self.options.passes
        cancel_event = cancel_event or threading.Event()
        reporter = _ProgressReporter(on_progress, total=len(silkscreen) * len(passes))

        if designator_filter.permissive:
            logger.info("有効部品記号が指定されていないため、全トークンを受理します")
        reporter.report(f"{len(designator_filter.valid_designators)}個の部品記号を探索します...")
        logger.info(
            f"シルクスクリーン {len(silkscreen)}レイヤーを {geometry.width}x{geometry.height}px で探索します "
            f"(scale={geometry.scale:.5f}px/unit)"
        )

        try:
            recognizer: RecognizerPort = self.recognizer_factory()
        except Exception as e:
            logger.error(f"OCRエンジンの起動に失敗しました: {e}")
            failed = [RecoverableLayerError(layer.filename, "ocr", cause=e) for layer in silkscreen]
            reporter.report("OCRエンジンを起動できませんでした", advance=reporter.total)
            return LocalizationResult(status=LocalizationStatus.DONE, failed_layers=failed)

        executor = ThreadPoolExecutor(max_workers=self.options.resolve_workers(), thread_name_prefix="silkscan-ocr")
        try:
            if not getattr(recognizer, "thread_safe", False):
                recognizer = SerializedRecognizer(recognizer)

            outcomes, failures = self._execute(
                executor, silkscreen, geometry, space, designator_filter, recognizer, passes, cancel_event, reporter
            )
            if cancel_event.is_set():
                logger.warning("部品記号の探索がキャンセルされました")
                return LocalizationResult(status=LocalizationStatus.CANCELLED)

            matches = self._reconcile(silkscreen, outcomes, failures, passes)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            try:
                recognizer.close()
            except Exception as e:
                logger.error(f"OCRエンジンの解放中にエラーが発生しました: {e}")

        reporter.report(f"{len(matches)}個の部品記号が見つかりました。")
        logger.info(f"部品記号の探索が完了しました: {len(matches)}件, 失敗レイヤー {len(failures)}件")
        return LocalizationResult(
            status=LocalizationStatus.DONE,
            matches=matches,
            failed_layers=[failures[rank] for rank in sorted(failures)],
        )

    @staticmethod
    def _collect_silkscreen_layers(layers: Sequence[Layer]) -> list[Layer]:
        ranked = [
            (SILKSCREEN_ORDER[layer.layer_type], index, layer)
            for index, layer in enumerate(layers)
            if layer.layer_type in SILKSCREEN_ORDER
        ]
        ranked.sort(key=lambda item: (item[0], item[1]))
        return [layer for _, _, layer in ranked]

    def _execute(
        self,
        executor: ThreadPoolExecutor,
        silkscreen: list[Layer],
        geometry: RasterGeometry,
        space: BoardCoordinateSpace,
        designator_filter: DesignatorFilter,
        recognizer: RecognizerPort,
        passes: tuple[RecognitionPass, ...],
        cancel_event: threading.Event,
        reporter: _ProgressReporter,
    ) -> tuple[dict[tuple[int, RecognitionPass], list[_Candidate]], dict[int, RecoverableLayerError]]:
        """ラスタ化とOCRパスをワーカーに投入し、全タスクの完了を待つ"""
        raster_futures = [
            executor.submit(self._prepare_raster, layer, geometry, cancel_event) for layer in silkscreen
        ]
        pass_futures: dict[Future, tuple[int, RecognitionPass]] = {}
        failures: dict[int, RecoverableLayerError] = {}

        for rank, (layer, raster_future) in enumerate(zip(silkscreen, raster_futures)):
            try:
                raster = raster_future.result()
            except _RunCancelled:
                break
            except RecoverableLayerError as e:
                logger.error(f"レイヤーのラスタ化に失敗しました: {e}")
                failures[rank] = e
                reporter.report(f"{layer.layer_type.value} をスキップしました", advance=len(passes))
                continue

            for recognition_pass in passes:
                if cancel_event.is_set():
                    break
                future = executor.submit(
                    self._recognize_pass,
                    layer,
                    raster,
                    recognition_pass,
                    geometry,
                    space,
                    designator_filter,
                    recognizer,
                    cancel_event,
                )
                pass_futures[future] = (rank, recognition_pass)
            # 通知はこのレイヤーのパスを投入した後
            reporter.report(f"{layer.layer_type.value} をスキャンしています...")

        outcomes: dict[tuple[int, RecognitionPass], list[_Candidate]] = {}
        for future in as_completed(pass_futures):
            rank, recognition_pass = pass_futures[future]
            layer = silkscreen[rank]
            try:
                outcomes[(rank, recognition_pass)] = future.result()
            except _RunCancelled:
                continue
            except RecoverableLayerError as e:
                logger.error(f"レイヤーのOCRに失敗しました: {e}")
                failures.setdefault(rank, e)
            reporter.report(f"{layer.layer_type.value} {int(recognition_pass)}° パス完了", advance=1)

        return outcomes, failures

    def _prepare_raster(
        self, layer: Layer, geometry: RasterGeometry, cancel_event: threading.Event
    ) -> np.ndarray:
        if cancel_event.is_set():
            raise _RunCancelled()
        try:
            with self.monitor.measure("rasterize"):
                image = rasterize_layer(layer.graphic, geometry)
                binary = binarize(image, self.options.binarize_threshold)
        except Exception as e:
            raise RecoverableLayerError(layer.filename, "raster", cause=e) from e
        logger.debug(f"{layer.filename} をラスタ化しました: {binary.shape[1]}x{binary.shape[0]}")
        return binary

    def _recognize_pass(
        self,
        layer: Layer,
        raster: np.ndarray,
        recognition_pass: RecognitionPass,
        geometry: RasterGeometry,
        space: BoardCoordinateSpace,
        designator_filter: DesignatorFilter,
        recognizer: RecognizerPort,
        cancel_event: threading.Event,
    ) -> list[_Candidate]:
        if cancel_event.is_set():
            raise _RunCancelled()

        stage = f"ocr-{int(recognition_pass)}"
        try:
            image = raster if recognition_pass is RecognitionPass.UPRIGHT else rotate_clockwise(raster)
            with self.monitor.measure(stage):
                words = recognizer.recognize(image)
        except Exception as e:
            raise RecoverableLayerError(layer.filename, stage, cause=e) from e

        candidates = []
        for word in words:
            token = designator_filter.accept(word.text)
            if token is None:
                continue
            cx, cy = word.center
            if recognition_pass is RecognitionPass.ROTATED:
                cx, cy = unrotate_point(cx, cy, geometry.height)
            x, y = raster_to_board(cx, cy, geometry, space)
            candidates.append(_Candidate(token, x, y))

        logger.debug(
            f"{layer.filename} {int(recognition_pass)}° パス: 認識 {len(words)}語, 受理 {len(candidates)}語"
        )
        return candidates

    @staticmethod
    def _reconcile(
        silkscreen: list[Layer],
        outcomes: dict[tuple[int, RecognitionPass], list[_Candidate]],
        failures: dict[int, RecoverableLayerError],
        passes: tuple[RecognitionPass, ...],
    ) -> dict[str, DesignatorMatch]:
        """固定の走査順で結果を統合する（最初に受理されたものを採用）"""
        matches: dict[str, DesignatorMatch] = {}
        for rank, layer in enumerate(silkscreen):
            # 失敗したレイヤーは成功したパスも含めて0件として扱う
            if rank in failures:
                continue
            for recognition_pass in passes:
                for candidate in outcomes.get((rank, recognition_pass), []):
                    if candidate.designator in matches:
                        continue
                    matches[candidate.designator] = DesignatorMatch(
                        designator=candidate.designator,
                        x=candidate.x,
                        y=candidate.y,
                        layer_type=layer.layer_type,
                    )
        return matches


def localize_designators(
    layers: Sequence[Layer],
    board_space: Any,
    valid_designators: Iterable[str] = (),
    on_progress: ProgressCallback | None = None,
    recognizer_factory: Callable[[], RecognizerPort] | None = None,
    options: LocalizationOptions | None = None,
    cancel_event: threading.Event | None = None,
) -> dict[str, DesignatorMatch]:
    """部品記号 -> 位置 の対応を返す

    見つからなかった部品記号は含まれない。キャンセル時は空の辞書を返す。
    """
    localizer = DesignatorLocalizer(recognizer_factory=recognizer_factory, options=options)
    result = localizer.run(layers, board_space, valid_designators, on_progress=on_progress, cancel_event=cancel_event)
    return result.matches
