"""
顏色正規化 — Sketch 浮點 RGBA（0.0–1.0）→ 8-bit hex + 色名

純函式、不可變結果。色名以 CSS3 具名色表做最近色比對
（RGB 距離 + 2×HSL 距離，同 Name That Color 的計分方式）。
"""

import colorsys
import math
from dataclasses import dataclass
from functools import lru_cache

import webcolors


@dataclass(frozen=True)
class NormalizedColor:
    red: str
    green: str
    blue: str
    alpha: float
    name: str

    @property
    def hex(self) -> tuple:
        return (self.red, self.green, self.blue)

    @property
    def css_value(self) -> str:
        # alpha 另外保存，不進 hex 字串
        return f"#{self.red}{self.green}{self.blue}"


def channel_to_hex(channel: float) -> str:
    """0.0–1.0 → 兩位小寫 hex（四捨五入，0.5 進位）."""
    value = int(math.floor(float(channel) * 255 + 0.5))
    value = max(0, min(255, value))
    return f"{value:02x}"


def color_from_rgba(red: float, green: float, blue: float, alpha: float = 1.0) -> NormalizedColor:
    r, g, b = channel_to_hex(red), channel_to_hex(green), channel_to_hex(blue)
    return NormalizedColor(
        red=r,
        green=g,
        blue=b,
        alpha=float(alpha),
        name=nearest_color_name(f"#{r}{g}{b}"),
    )


def color_from_sketch(color: dict) -> NormalizedColor:
    """Sketch 文件內的 {red, green, blue, alpha} 物件."""
    return color_from_rgba(
        color["red"],
        color["green"],
        color["blue"],
        color.get("alpha", 1.0),
    )


@lru_cache(maxsize=1)
def _named_colors() -> tuple:
    """[(name, (r, g, b), (h, s, l)), ...]；同 hex 的別名只留字母序第一個."""
    table = []
    seen = set()
    for name in webcolors.names(webcolors.CSS3):
        hex_value = webcolors.name_to_hex(name, spec=webcolors.CSS3)
        if hex_value in seen:
            continue
        seen.add(hex_value)
        rgb = tuple(webcolors.hex_to_rgb(hex_value))
        table.append((name, rgb, _hsl(rgb)))
    return tuple(table)


@lru_cache(maxsize=1)
def _exact_names() -> dict:
    return {
        webcolors.rgb_to_hex(rgb): name
        for name, rgb, _ in _named_colors()
    }


def _hsl(rgb: tuple) -> tuple:
    # colorsys 回傳 0–1，放大到 0–255 與 RGB 同尺度
    h, l, s = colorsys.rgb_to_hls(*(c / 255 for c in rgb))
    return (h * 255, s * 255, l * 255)


@lru_cache(maxsize=4096)
def nearest_color_name(css_value: str) -> str:
    """'#rrggbb' → 最接近的 CSS3 色名."""
    css_value = webcolors.normalize_hex(css_value)
    exact = _exact_names().get(css_value)
    if exact:
        return exact

    rgb = tuple(webcolors.hex_to_rgb(css_value))
    hsl = _hsl(rgb)
    best_name, best_score = None, None
    for name, named_rgb, named_hsl in _named_colors():
        rgb_dist = sum((a - b) ** 2 for a, b in zip(rgb, named_rgb))
        hsl_dist = sum((a - b) ** 2 for a, b in zip(hsl, named_hsl))
        score = rgb_dist + hsl_dist * 2
        if best_score is None or score < best_score:
            best_name, best_score = name, score
    return best_name
