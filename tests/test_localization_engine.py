"""Unit tests for the designator localization engine."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import numpy as np
import pytest

from silkscan.adapters.fakes import BrokenGraphic, FailingRecognizer, FakeRecognizer
from silkscan.core.errors import ConfigurationError, RecoverableLayerError
from silkscan.localization import DesignatorLocalizer, LocalizationOptions, localize_designators
from silkscan.models import (
    BoardCoordinateSpace,
    Layer,
    LayerType,
    LocalizationProgress,
    LocalizationStatus,
)

from conftest import make_layer


def _localizer(recognizer, **option_overrides) -> DesignatorLocalizer:
    option_overrides.setdefault("max_workers", 4)
    options = LocalizationOptions(**option_overrides)
    return DesignatorLocalizer(recognizer_factory=lambda: recognizer, options=options)


def test_end_to_end_single_designator(board_space: BoardCoordinateSpace):
    """(10, 5) に描かれた U1 が (10, 5) 付近で見つかる。"""

    layers = [make_layer([(10.0, 5.0)], board_space)]
    matches = localize_designators(
        layers, board_space, ["U1"], recognizer_factory=lambda: FakeRecognizer(["U1"])
    )

    assert set(matches) == {"U1"}
    match = matches["U1"]
    assert match.x == pytest.approx(10.0, abs=0.05)
    assert match.y == pytest.approx(5.0, abs=0.05)
    assert match.layer_type == LayerType.TOP_SILKSCREEN


def test_board_space_with_offset_origin(offset_board_space: BoardCoordinateSpace):
    """原点がずれたボードでも正しい位置に戻る。"""

    layers = [make_layer([(1.0, 6.0)], offset_board_space)]
    result = _localizer(FakeRecognizer(["R7"])).run(layers, offset_board_space, ["R7"])

    assert result.status is LocalizationStatus.DONE
    assert result.matches["R7"].x == pytest.approx(1.0, abs=0.05)
    assert result.matches["R7"].y == pytest.approx(6.0, abs=0.05)


def test_accepts_space_as_sequence():
    """ボード座標空間を (minX, minY, w, h) で渡せる。"""

    space = BoardCoordinateSpace.from_native(0.0, 0.0, 20.0, 10.0)
    layers = [make_layer([(10.0, 5.0)], space)]
    result = _localizer(FakeRecognizer(["U1"])).run(layers, space.view_box, ["U1"])
    assert "U1" in result.matches


def test_tokens_outside_bom_are_rejected(board_space: BoardCoordinateSpace):
    """BOMにないトークンは結果に含まれない。"""

    layers = [make_layer([(4.0, 8.0), (15.0, 2.0)], board_space)]
    result = _localizer(FakeRecognizer(["U9", "r-1"])).run(layers, board_space, ["R1", "U1"])

    assert set(result.matches) == {"R1"}
    assert result.matches["R1"].x == pytest.approx(15.0, abs=0.05)


def test_permissive_mode_without_bom(board_space: BoardCoordinateSpace):
    """有効部品記号が空の場合は全トークン（2文字以上）を受理する。"""

    layers = [make_layer([(4.0, 8.0), (15.0, 2.0)], board_space)]
    result = _localizer(FakeRecognizer(["X", "c-12"])).run(layers, board_space, [])

    assert set(result.matches) == {"C12"}


def test_top_silkscreen_wins_over_bottom(board_space: BoardCoordinateSpace):
    """表シルクで見つかった部品記号は裏シルクの結果で上書きされない。"""

    layers = [
        make_layer([(4.0, 8.0), (15.0, 2.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_SILKSCREEN, "board.gto"),
    ]
    result = _localizer(FakeRecognizer(["U1", "R1"])).run(layers, board_space, ["U1", "R1"])

    assert result.matches["U1"].layer_type == LayerType.TOP_SILKSCREEN
    assert result.matches["U1"].x == pytest.approx(10.0, abs=0.05)
    assert result.matches["R1"].layer_type == LayerType.BOTTOM_SILKSCREEN
    assert result.matches["R1"].x == pytest.approx(15.0, abs=0.05)
    assert result.matches["R1"].y == pytest.approx(2.0, abs=0.05)


def test_upright_pass_wins_regardless_of_completion_order(board_space: BoardCoordinateSpace):
    """完了順に関係なく、正立パスの結果が回転パスより優先される。"""

    # 正立パスでは (15, 8) が先頭、回転パスでは (4, 2) が先頭の連結成分になる
    layers = [make_layer([(4.0, 2.0), (15.0, 8.0)], board_space)]

    def slow_upright(image: np.ndarray) -> None:
        if image.shape[0] < image.shape[1]:
            time.sleep(0.2)

    recognizer = FakeRecognizer(["U1"], on_recognize=slow_upright)
    result = _localizer(recognizer).run(layers, board_space, ["U1"])

    assert result.matches["U1"].x == pytest.approx(15.0, abs=0.05)
    assert result.matches["U1"].y == pytest.approx(8.0, abs=0.05)


def test_rotated_pass_finds_vertical_text(board_space: BoardCoordinateSpace):
    """回転パスで見つかった位置も元の座標系に戻される。"""

    layers = [make_layer([(4.0, 2.0), (15.0, 8.0)], board_space)]

    # 正立パスでは2番目、回転パスでは1番目の成分に U1 が割り当てられる
    def texts_for(image: np.ndarray) -> None:
        recognizer.texts = ["XX", "YY"] if image.shape[0] < image.shape[1] else ["U1"]

    recognizer = FakeRecognizer([], thread_safe=False, on_recognize=texts_for)
    result = _localizer(recognizer, max_workers=1).run(layers, board_space, ["U1"])

    assert result.matches["U1"].x == pytest.approx(4.0, abs=0.05)
    assert result.matches["U1"].y == pytest.approx(2.0, abs=0.05)


def test_rotated_pass_can_be_disabled(board_space: BoardCoordinateSpace):
    """rotated_pass=False の場合は正立パスのみ実行する。"""

    layers = [make_layer([(10.0, 5.0)], board_space)]
    recognizer = FakeRecognizer(["U1"])
    _localizer(recognizer, rotated_pass=False).run(layers, board_space, ["U1"])

    assert recognizer.calls == 1


def test_failed_layer_does_not_abort_run(board_space: BoardCoordinateSpace):
    """1レイヤーの失敗は他のレイヤーの処理を止めない。"""

    layers = [
        Layer("broken.gto", LayerType.TOP_SILKSCREEN, BrokenGraphic()),
        make_layer([(10.0, 5.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
    ]
    result = _localizer(FakeRecognizer(["U1"])).run(layers, board_space, ["U1"])

    assert result.status is LocalizationStatus.DONE
    assert result.matches["U1"].layer_type == LayerType.BOTTOM_SILKSCREEN
    assert len(result.failed_layers) == 1
    failure = result.failed_layers[0]
    assert isinstance(failure, RecoverableLayerError)
    assert failure.filename == "broken.gto"
    assert failure.stage == "raster"


def test_recognizer_failure_counts_as_zero_matches(board_space: BoardCoordinateSpace):
    """OCRが失敗したレイヤーは0件として扱われる。"""

    layers = [
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_SILKSCREEN, "board.gto"),
        make_layer([(10.0, 5.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
    ]
    recognizer = FailingRecognizer()
    result = _localizer(recognizer).run(layers, board_space, ["U1"])

    assert result.status is LocalizationStatus.DONE
    assert result.matches == {}
    assert [f.filename for f in result.failed_layers] == ["board.gto", "board.gbo"]
    assert all(f.stage.startswith("ocr") for f in result.failed_layers)
    assert recognizer.closed


def test_recognizer_startup_failure_is_recorded_per_layer(board_space: BoardCoordinateSpace):
    """OCRエンジンの起動に失敗しても実行は中断せず、各レイヤーの失敗として記録される。"""

    def factory():
        raise RuntimeError("tesseract worker failed to start")

    layers = [
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_SILKSCREEN, "board.gto"),
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_COPPER, "board.gtl"),
        make_layer([(10.0, 5.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
    ]
    result = DesignatorLocalizer(recognizer_factory=factory).run(layers, board_space, ["U1"])

    assert result.status is LocalizationStatus.DONE
    assert result.matches == {}
    assert [f.filename for f in result.failed_layers] == ["board.gto", "board.gbo"]
    assert all(f.stage == "ocr" for f in result.failed_layers)
    assert isinstance(result.failed_layers[0].cause, RuntimeError)


def test_localize_designators_survives_recognizer_startup_failure(board_space: BoardCoordinateSpace):
    """簡易APIでも起動失敗は空の対応表になる。"""

    def factory():
        raise RuntimeError("tesseract worker failed to start")

    layers = [make_layer([(10.0, 5.0)], board_space)]
    assert localize_designators(layers, board_space, ["U1"], recognizer_factory=factory) == {}


def test_empty_when_no_silkscreen_layers(board_space: BoardCoordinateSpace):
    """シルクレイヤーがない場合は空の結果（エラーではない）。"""

    factory = MagicMock()
    layers = [make_layer([(10.0, 5.0)], board_space, LayerType.TOP_COPPER, "board.gtl")]
    result = DesignatorLocalizer(recognizer_factory=factory).run(layers, board_space, ["U1"])

    assert result.status is LocalizationStatus.EMPTY
    assert result.matches == {}
    factory.assert_not_called()


def test_empty_when_board_is_empty():
    """ボード座標空間がない場合は空の結果。"""

    result = DesignatorLocalizer(recognizer_factory=MagicMock()).run([], None, ["U1"])
    assert result.status is LocalizationStatus.EMPTY


def test_invalid_board_space_raises(board_space: BoardCoordinateSpace):
    """不正なボード座標空間は ConfigurationError。"""

    layers = [make_layer([(10.0, 5.0)], board_space)]
    with pytest.raises(ConfigurationError):
        _localizer(FakeRecognizer(["U1"])).run(layers, (0.0, 0.0, 0.0, 10.0), ["U1"])


def test_cancel_before_start_returns_cancelled(board_space: BoardCoordinateSpace):
    """開始前にキャンセルされた場合は部分結果を返さない。"""

    cancel_event = threading.Event()
    cancel_event.set()
    recognizer = FakeRecognizer(["U1"])
    result = _localizer(recognizer).run(
        [make_layer([(10.0, 5.0)], board_space)], board_space, ["U1"], cancel_event=cancel_event
    )

    assert result.status is LocalizationStatus.CANCELLED
    assert result.matches == {}
    assert recognizer.closed


def test_cancel_during_run_returns_no_partial_mapping(board_space: BoardCoordinateSpace):
    """実行中にキャンセルされた場合も部分結果を返さない。"""

    cancel_event = threading.Event()
    recognizer = FakeRecognizer(["U1"], on_recognize=lambda image: cancel_event.set())
    layers = [
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_SILKSCREEN, "board.gto"),
        make_layer([(10.0, 5.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
    ]
    result = _localizer(recognizer, max_workers=1).run(layers, board_space, ["U1"], cancel_event=cancel_event)

    assert result.status is LocalizationStatus.CANCELLED
    assert result.matches == {}


def test_progress_reported_and_callback_errors_ignored(board_space: BoardCoordinateSpace):
    """進捗が通知され、コールバックの例外は無視される。"""

    received: list[LocalizationProgress] = []

    def on_progress(progress: LocalizationProgress) -> None:
        received.append(progress)
        raise RuntimeError("UI failure")

    layers = [make_layer([(10.0, 5.0)], board_space)]
    result = _localizer(FakeRecognizer(["U1"])).run(layers, board_space, ["U1"], on_progress=on_progress)

    assert result.status is LocalizationStatus.DONE
    assert "U1" in result.matches
    assert received
    assert received[-1].completed == received[-1].total == 2
    assert all(p.completed <= p.total for p in received)


def test_progress_callback_does_not_delay_recognition(board_space: BoardCoordinateSpace):
    """レイヤーのスキャン通知はOCRパスの投入後に行われる。"""

    recognized = threading.Event()
    observed: list[bool] = []

    def on_progress(progress: LocalizationProgress) -> None:
        if "スキャン" in progress.message:
            observed.append(recognized.wait(timeout=5))

    recognizer = FakeRecognizer(["U1"], on_recognize=lambda image: recognized.set())
    layers = [make_layer([(10.0, 5.0)], board_space)]
    result = _localizer(recognizer).run(layers, board_space, ["U1"], on_progress=on_progress)

    assert result.status is LocalizationStatus.DONE
    assert observed == [True]


def test_non_thread_safe_recognizer_is_closed(board_space: BoardCoordinateSpace):
    """スレッドセーフでない認識器も直列化して使用し、最後に解放する。"""

    recognizer = FakeRecognizer(["U1"], thread_safe=False)
    layers = [
        make_layer([(10.0, 5.0)], board_space, LayerType.TOP_SILKSCREEN, "board.gto"),
        make_layer([(10.0, 5.0)], board_space, LayerType.BOTTOM_SILKSCREEN, "board.gbo"),
    ]
    result = _localizer(recognizer).run(layers, board_space, ["U1"])

    assert "U1" in result.matches
    assert recognizer.calls == 4
    assert recognizer.closed


def test_recognizer_created_per_run(board_space: BoardCoordinateSpace):
    """実行ごとに新しい認識器が作られる。"""

    created: list[FakeRecognizer] = []

    def factory() -> FakeRecognizer:
        recognizer = FakeRecognizer(["U1"])
        created.append(recognizer)
        return recognizer

    localizer = DesignatorLocalizer(recognizer_factory=factory, options=LocalizationOptions(max_workers=2))
    layers = [make_layer([(10.0, 5.0)], board_space)]
    first = localizer.run(layers, board_space, ["U1"])
    second = localizer.run(layers, board_space, ["U1"])

    assert len(created) == 2
    assert all(r.closed for r in created)
    assert first.matches == second.matches


def test_performance_monitor_records_stages(board_space: BoardCoordinateSpace):
    """ラスタ化とOCRパスの処理時間が記録される。"""

    localizer = _localizer(FakeRecognizer(["U1"]))
    localizer.run([make_layer([(10.0, 5.0)], board_space)], board_space, ["U1"])

    metrics = localizer.monitor.get_metrics()
    assert metrics["rasterize"]["count"] == 1
    assert metrics["ocr-0"]["count"] == 1
    assert metrics["ocr-90"]["count"] == 1


def test_options_resolve_workers():
    """ワーカー数は指定値、未指定の場合はCPU数。"""

    assert LocalizationOptions(max_workers=3).resolve_workers() == 3
    assert LocalizationOptions().resolve_workers() >= 1
    assert len(LocalizationOptions(rotated_pass=False).passes) == 1
