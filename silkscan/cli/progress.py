"""tqdm progress bar bridge for localization runs."""

from __future__ import annotations

from tqdm import tqdm

from silkscan.models import LocalizationProgress


class TqdmProgress:
    """LocalizationProgress を tqdm の進捗バーに反映するコールバック"""

    def __init__(self, desc: str = "部品記号探索中"):
        self.desc = desc
        self._bar: tqdm | None = None

    def __call__(self, progress: LocalizationProgress) -> None:
        if self._bar is None and progress.total > 0:
            self._bar = tqdm(total=progress.total, desc=self.desc)
        if self._bar is None:
            return
        self._bar.set_postfix_str(progress.message)
        self._bar.update(progress.completed - self._bar.n)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
