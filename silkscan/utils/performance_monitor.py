"""Performance monitoring utilities for localization stages."""

from contextlib import contextmanager
import logging
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """パフォーマンスモニタリングクラス

    ラスタ化・OCRパスなどの処理時間を計測します。
    ワーカースレッドから同時に計測されても集計が壊れないよう排他制御します。
    """

    def __init__(self):
        """PerformanceMonitorを初期化"""
        self.metrics: dict[str, dict] = {}
        self._lock = threading.Lock()

    @contextmanager
    def measure(self, operation_name: str):
        """処理時間を計測するコンテキストマネージャー

        Args:
            operation_name: 操作名（例: "rasterize", "ocr-0"）

        Example:
            with monitor.measure("ocr-0"):
                words = recognizer.recognize(raster)
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start_time
            with self._lock:
                if operation_name not in self.metrics:
                    self.metrics[operation_name] = {
                        "total_time": 0.0,
                        "count": 0,
                        "min_time": float("inf"),
                        "max_time": 0.0,
                    }
                entry = self.metrics[operation_name]
                entry["total_time"] += elapsed
                entry["count"] += 1
                entry["min_time"] = min(entry["min_time"], elapsed)
                entry["max_time"] = max(entry["max_time"], elapsed)

    def get_metrics(self, operation_name: Optional[str] = None) -> dict:
        """メトリクスを取得

        Args:
            operation_name: 操作名（Noneの場合は全メトリクスを返す）

        Returns:
            メトリクスの辞書
        """
        with self._lock:
            if operation_name:
                return dict(self.metrics.get(operation_name, {}))
            return {name: dict(values) for name, values in self.metrics.items()}

    def get_summary(self) -> dict:
        """サマリー統計を取得

        Returns:
            サマリー統計の辞書
        """
        summary = {}
        for op_name, metrics in self.get_metrics().items():
            if metrics["count"] > 0:
                summary[op_name] = {
                    "total_time": metrics["total_time"],
                    "count": metrics["count"],
                    "avg_time": metrics["total_time"] / metrics["count"],
                    "min_time": metrics["min_time"],
                    "max_time": metrics["max_time"],
                }
        return summary

    def log_summary(self, logger_instance: Optional[logging.Logger] = None) -> None:
        """サマリーをログ出力

        Args:
            logger_instance: ロガーインスタンス（Noneの場合はデフォルトロガー）
        """
        log = logger_instance or logger
        summary = self.get_summary()

        if not summary:
            log.info("パフォーマンスメトリクスがありません")
            return

        log.info("=" * 80)
        log.info("パフォーマンスサマリー:")
        for op_name, stats in summary.items():
            log.info(f"  {op_name}: {stats['count']}回, 平均 {stats['avg_time']:.3f}秒, 最大 {stats['max_time']:.3f}秒")
        log.info("=" * 80)

    def reset(self) -> None:
        """メトリクスをリセット"""
        with self._lock:
            self.metrics.clear()
