"""Lenient Gerber RS-274X / Excellon plotter.

Turns one fabrication file into a local bounding box plus a renderable
PlotGraphic. Coordinates are expressed in plotter units (1/1000 of the
file's native unit). Syntax is not validated: unknown commands are
ignored and the plotter keeps whatever geometry it could recover.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

import numpy as np

from silkscan.core.errors import RecoverableLayerError
from silkscan.graphics import Flash, PlotGraphic, Stroke
from silkscan.models import PLOTTER_UNITS_PER_NATIVE, ParsedLayerGeometry, RawLayerInput

logger = logging.getLogger(__name__)

EXCELLON_EXTENSIONS = {"drl", "xln", "nc", "dri"}

# アパーチャ未定義時の線幅（ネイティブ単位の 0.008）
_DEFAULT_APERTURE_SIZE = 0.008

_GERBER_BLOCK = re.compile(r"%([^%]*)%|([^%*]+)\*")
_COORD = re.compile(r"([XYIJ])([+-]?[\d.]+)")
_INTERPOLATION = re.compile(r"G0*([123])(?!\d)")
_QUADRANT_MODE = re.compile(r"G7([45])(?!\d)")

# 円弧を線分列にする際の最大角度ステップ（5度）
_ARC_STEP = math.radians(5.0)


@dataclass
class Aperture:
    """Gerberアパーチャ定義

    Attributes:
        code: Dコード
        shape: "C"（円）、"R"（矩形）、"O"（長円）、"P"（多角形）
        width: 幅（ネイティブ単位）
        height: 高さ（ネイティブ単位）
    """

    code: int
    shape: str
    width: float
    height: float


class GerberPlotter:
    """Gerberファイルをプロットする

    D01（描画）、D02（移動）、D03（フラッシュ）と FS/MO/ADD 拡張コマンドを
    解釈する。G02/G03 の円弧は I/J の中心オフセットから線分列に展開する
    （G74 単一象限、G75 複数象限）。領域塗りつぶしは輪郭線として描く。
    """

    def __init__(self):
        self._reset_state()

    def _reset_state(self) -> None:
        self.decimals = {"X": 4, "Y": 4}
        self.units = "IN"
        self.apertures: dict[int, Aperture] = {}
        self.current_aperture: int | None = None
        self.position = (0.0, 0.0)
        self.current_path: list[tuple[float, float]] = []
        self.interpolation = 1
        self.multi_quadrant = False
        self.current_width = _DEFAULT_APERTURE_SIZE
        self.strokes: list[Stroke] = []
        self.flashes: list[Flash] = []

    def plot(self, text: str, name: str = "") -> PlotGraphic:
        """Gerber文字列をプロットする

        Args:
            text: Gerberファイルの内容
            name: 図形の識別名

        Returns:
            プロット結果
        """
        self._reset_state()

        for match in _GERBER_BLOCK.finditer(text):
            extended, word = match.group(1), match.group(2)
            if extended is not None:
                for command in extended.split("*"):
                    command = command.strip()
                    if command:
                        self._parse_extended_command(command)
            elif word is not None:
                word = word.strip()
                if word:
                    self._parse_word(word)

        self._finalize_path()
        return PlotGraphic(strokes=tuple(self.strokes), flashes=tuple(self.flashes), name=name)

    def _parse_extended_command(self, cmd: str) -> None:
        if cmd.startswith("FS"):
            m = re.search(r"X(\d)(\d)Y(\d)(\d)", cmd)
            if m:
                self.decimals = {"X": int(m.group(2)), "Y": int(m.group(4))}
        elif cmd.startswith("MO"):
            self.units = "MM" if "MM" in cmd else "IN"
        elif cmd.startswith("ADD"):
            self._parse_aperture_def(cmd)

    def _parse_aperture_def(self, cmd: str) -> None:
        m = re.match(r"ADD(\d+)([A-Za-z_][\w.]*?)(?:,(.*))?$", cmd)
        if not m:
            return
        code = int(m.group(1))
        shape = m.group(2)[0].upper() if m.group(2) in ("C", "R", "O", "P") else "C"
        params = [float(p) for p in re.findall(r"[\d.]+", m.group(3) or "") if p != "."]
        width = params[0] if params else _DEFAULT_APERTURE_SIZE
        height = params[1] if len(params) > 1 and shape in ("R", "O") else width
        self.apertures[code] = Aperture(code=code, shape=shape, width=width, height=height)

    def _parse_word(self, word: str) -> None:
        if word.startswith("G04") or word.startswith("M0"):
            return

        # G54D10 / D10 のアパーチャ選択
        select = re.fullmatch(r"(?:G54)?D(\d+)", word)
        if select and int(select.group(1)) >= 10:
            self._finalize_path()
            self.current_aperture = int(select.group(1))
            aperture = self.apertures.get(self.current_aperture)
            self.current_width = aperture.width if aperture else _DEFAULT_APERTURE_SIZE
            return

        mode = _INTERPOLATION.search(word)
        if mode:
            self.interpolation = int(mode.group(1))
        quadrant = _QUADRANT_MODE.search(word)
        if quadrant:
            self.multi_quadrant = quadrant.group(1) == "5"

        all_coords = dict(_COORD.findall(word))
        coords = {axis: value for axis, value in all_coords.items() if axis in ("X", "Y")}
        d_code = re.search(r"D0*([123])(?!\d)", word)

        x = self._to_native(coords["X"], "X") if "X" in coords else self.position[0]
        y = self._to_native(coords["Y"], "Y") if "Y" in coords else self.position[1]
        operation = int(d_code.group(1)) if d_code else (1 if coords else None)

        if operation == 1:
            if not self.current_path:
                self.current_path.append(self.position)
            if self.interpolation in (2, 3) and ("I" in all_coords or "J" in all_coords):
                i = self._to_native(all_coords["I"], "X") if "I" in all_coords else 0.0
                j = self._to_native(all_coords["J"], "Y") if "J" in all_coords else 0.0
                self.current_path.extend(
                    self._arc_points(self.position, (x, y), i, j, clockwise=self.interpolation == 2)
                )
            else:
                self.current_path.append((x, y))
        elif operation == 2:
            self._finalize_path()
        elif operation == 3:
            self._finalize_path()
            self._add_flash(x, y)
        self.position = (x, y)

    def _arc_points(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        i: float,
        j: float,
        clockwise: bool,
    ) -> list[tuple[float, float]]:
        """円弧を線分列に展開する（始点を除き、終点を含む）

        Args:
            start: 始点（ネイティブ単位）
            end: 終点（ネイティブ単位）
            i: 始点から中心までのXオフセット
            j: 始点から中心までのYオフセット
            clockwise: G02 の場合True

        Returns:
            円弧上の点列
        """
        sx, sy = start
        ex, ey = end
        if self.multi_quadrant:
            centers = [(sx + i, sy + j)]
        else:
            # G74 では I/J は符号なし。90度以内に収まる中心を選ぶ
            centers = [(sx + si * abs(i), sy + sj * abs(j)) for si in (1, -1) for sj in (1, -1)]

        best = None
        for cx, cy in centers:
            sweep = _arc_sweep(start, end, (cx, cy), clockwise)
            if not self.multi_quadrant and abs(sweep) > math.pi / 2 + 1e-9:
                continue
            error = abs(math.hypot(sx - cx, sy - cy) - math.hypot(ex - cx, ey - cy))
            if best is None or error < best[0]:
                best = (error, cx, cy, sweep)

        if best is None:
            return [end]
        _, cx, cy, sweep = best
        radius = math.hypot(sx - cx, sy - cy)
        if radius == 0.0:
            return [end]

        start_angle = math.atan2(sy - cy, sx - cx)
        steps = max(2, math.ceil(abs(sweep) / _ARC_STEP))
        points = []
        for n in range(1, steps):
            angle = start_angle + sweep * n / steps
            points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
        points.append(end)
        return points

    def _to_native(self, raw: str, axis: str) -> float:
        if "." in raw:
            return float(raw)
        return int(raw) / (10 ** self.decimals[axis])

    def _add_flash(self, x: float, y: float) -> None:
        aperture = self.apertures.get(self.current_aperture) if self.current_aperture is not None else None
        width = aperture.width if aperture else _DEFAULT_APERTURE_SIZE
        height = aperture.height if aperture else width
        shape = "R" if aperture and aperture.shape == "R" else "C"
        k = PLOTTER_UNITS_PER_NATIVE
        self.flashes.append(Flash(x * k, y * k, width * k, height * k, shape))

    def _finalize_path(self) -> None:
        if len(self.current_path) >= 2:
            k = PLOTTER_UNITS_PER_NATIVE
            points = np.asarray(self.current_path, dtype=np.float64) * k
            self.strokes.append(Stroke(points=points, width=self.current_width * k))
        self.current_path = []


def _arc_sweep(
    start: tuple[float, float], end: tuple[float, float], center: tuple[float, float], clockwise: bool
) -> float:
    """中心から見た始点から終点までの回転角（時計回りは負）。始点と終点が一致する場合は一周"""
    a0 = math.atan2(start[1] - center[1], start[0] - center[0])
    a1 = math.atan2(end[1] - center[1], end[0] - center[0])
    sweep = a1 - a0
    if clockwise:
        while sweep >= 0:
            sweep -= 2 * math.pi
    else:
        while sweep <= 0:
            sweep += 2 * math.pi
    return sweep


class ExcellonPlotter:
    """Excellonドリルファイルをプロットする

    ツール定義（T1C0.035）と穴位置（X..Y..）のみを解釈し、穴をフラッシュとして出力する。
    """

    def plot(self, text: str, name: str = "") -> PlotGraphic:
        tools: dict[str, float] = {}
        current_tool: str | None = None
        metric = False
        decimals = 4
        position = (0.0, 0.0)
        flashes: list[Flash] = []

        for raw_line in text.splitlines():
            line = raw_line.strip().upper()
            if not line or line.startswith(";"):
                continue
            if line.startswith("METRIC"):
                metric, decimals = True, 3
                continue
            if line.startswith("INCH"):
                metric, decimals = False, 4
                continue

            tool_def = re.match(r"^T(\d+)(?:F\d+)?(?:S\d+)?C([\d.]+)", line)
            if tool_def:
                tools[tool_def.group(1).lstrip("0") or "0"] = float(tool_def.group(2))
                continue
            tool_select = re.fullmatch(r"T(\d+)", line)
            if tool_select:
                current_tool = tool_select.group(1).lstrip("0") or "0"
                continue

            coords = dict(re.findall(r"([XY])([+-]?[\d.]+)", line))
            if not coords or line.startswith(("G", "M")):
                continue
            x = self._to_native(coords.get("X"), decimals, position[0])
            y = self._to_native(coords.get("Y"), decimals, position[1])
            position = (x, y)
            diameter = tools.get(current_tool or "", 0.03 if not metric else 0.8)
            k = PLOTTER_UNITS_PER_NATIVE
            flashes.append(Flash(x * k, y * k, diameter * k, diameter * k, "C"))

        return PlotGraphic(flashes=tuple(flashes), name=name)

    @staticmethod
    def _to_native(raw: str | None, decimals: int, fallback: float) -> float:
        if raw is None:
            return fallback
        if "." in raw:
            return float(raw)
        return int(raw) / (10**decimals)


def _looks_like_excellon(raw: RawLayerInput) -> bool:
    if raw.extension in EXCELLON_EXTENSIONS:
        return True
    head = raw.text[:2048].upper()
    return "M48" in head and "%FS" not in head


def plot_layer(raw: RawLayerInput) -> ParsedLayerGeometry:
    """1ファイルをプロットし、ローカル矩形とベクタ図形を返す

    Args:
        raw: アップロードされたファイル

    Returns:
        プロット結果

    Raises:
        RecoverableLayerError: 図形が1つも得られなかった場合
    """
    try:
        if _looks_like_excellon(raw):
            graphic = ExcellonPlotter().plot(raw.text, name=raw.filename)
        else:
            graphic = GerberPlotter().plot(raw.text, name=raw.filename)
    except (ValueError, IndexError) as e:
        raise RecoverableLayerError(raw.filename, "plot", cause=e) from e

    if graphic.is_empty:
        raise RecoverableLayerError(raw.filename, "plot", "描画可能な図形がありません")

    box = graphic.bounds()
    logger.debug(
        f"{raw.filename} をプロットしました: strokes={len(graphic.strokes)}, flashes={len(graphic.flashes)}, "
        f"bbox=({box.min_x:.0f}, {box.min_y:.0f}, {box.width:.0f}, {box.height:.0f})"
    )
    return ParsedLayerGeometry(bounding_box=box, graphic=graphic)
