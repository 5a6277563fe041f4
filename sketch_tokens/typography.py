"""
Typography token 探勘

Text style 名稱以 '/' 編碼分類，例如 "H1/Mobile/Italic/Brand"：
  1. 元素（h1–h6、p）：必要，沒有就捨棄
  2. 格式（mobile / tablet / desktop / 斷點數字 / landscape / full …）
     非 p 元素必要
  3. italic：只做偵測，不移除
  4. 其餘片段保留為 variables

同一元素的所有 style 彙整成一個 TypographyToken：
min_size 取最小、base_size 取最大（由 mobile 最小值放大到 desktop 基準）。
"""

import logging
from collections import OrderedDict
from typing import Iterable, Optional, Sequence

from .colors import color_from_sketch
from .log import get_logger
from .models import TYPOGRAPHY_ELEMENTS, TypoEntry, TypographyToken, as_documents

FORMAT_TOKENS = (
    "mobile", "tablet", "desktop", "landscape", "portrait", "full",
    "xs", "sm", "md", "lg", "xl",
    "320", "360", "375", "414", "480", "768", "1024", "1280", "1366", "1440", "1920",
)

ITALIC_TOKEN = "italic"
ITALIC_FONT_MARKER = "-ita"
DEFAULT_WEIGHT = "Regular"

_FONT_ATTRIBUTE = "MSAttributedStringFontAttribute"
_COLOR_ATTRIBUTE = "MSAttributedStringColorAttribute"


class MalformedStyle(ValueError):
    pass


def text_styles(document: dict) -> list:
    styles = document.get("layerTextStyles") if isinstance(document, dict) else None
    if not isinstance(styles, dict):
        return []
    objects = styles.get("objects")
    return objects if isinstance(objects, list) else []


def _dig(obj, *keys):
    """逐層取值；缺少 → None，型別不符 → MalformedStyle."""
    for key in keys:
        if obj is None:
            return None
        if not isinstance(obj, dict):
            raise MalformedStyle(f"expected object at '{key}', got {type(obj).__name__}")
        obj = obj.get(key)
    return obj


def _number(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedStyle(f"expected number, got {value!r}")
    return value


def _pop_first(segments: list, candidates) -> Optional[str]:
    for i, segment in enumerate(segments):
        if segment in candidates:
            return segments.pop(i)
    return None


def divide_typo(style: dict, format_tokens: Sequence[str] = FORMAT_TOKENS) -> Optional[TypoEntry]:
    """分類單一 text style；不符命名規則回傳 None，屬性結構錯誤拋 MalformedStyle."""
    name = _dig(style, "name")
    if not isinstance(name, str):
        raise MalformedStyle("text style without a name")

    segments = [s.strip().lower() for s in name.split("/")]
    segments = [s for s in segments if s]

    element = _pop_first(segments, TYPOGRAPHY_ELEMENTS)
    if element is None:
        return None
    fmt = _pop_first(segments, {t.lower() for t in format_tokens})
    if element != "p" and fmt is None:
        return None

    attributes = _dig(style, "value", "textStyle", "encodedAttributes")
    font = _dig(attributes, _FONT_ATTRIBUTE, "attributes")
    raw_color = _dig(attributes, _COLOR_ATTRIBUTE)
    font_family = _dig(font, "name")
    if font_family is not None and not isinstance(font_family, str):
        raise MalformedStyle(f"font name should be a string, got {font_family!r}")

    color = None
    if raw_color is not None:
        try:
            color = color_from_sketch(raw_color).css_value
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedStyle(f"invalid text color: {e!r}") from e

    return TypoEntry(
        element=element,
        style_name=name,
        format=fmt,
        has_italic_variant=ITALIC_TOKEN in segments,
        variables=segments,
        size=_number(_dig(font, "size")),
        font_family=font_family,
        color=color,
        kerning=_number(_dig(attributes, "kerning")),
        line_height=_number(_dig(attributes, "paragraphStyle", "maximumLineHeight")),
    )


def split_font_family(font_family: str) -> tuple:
    """'Roboto-Bold' → ('Roboto', 'Bold')；沒有 '-' 時 weight 為 Regular."""
    parts = font_family.split("-")
    weight = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_WEIGHT
    return parts[0], weight


def aggregate_entries(key: str, entries: Sequence[TypoEntry], project_id) -> TypographyToken:
    sizes = [e.size for e in entries if e.size is not None]
    families = list(dict.fromkeys(e.font_family for e in entries if e.font_family))
    upright = [f for f in families if ITALIC_FONT_MARKER not in f.lower()]

    family = None
    weights: list[str] = []
    if upright:
        family = split_font_family(upright[0])[0]
        weights = list(dict.fromkeys(split_font_family(f)[1] for f in upright))
    elif families:
        # 全部都是 italic 字型：沿用第一個字型的家族名，weight 留空
        family = split_font_family(families[0])[0]

    return TypographyToken(
        project_id=project_id,
        key=key,
        colors=list(dict.fromkeys(e.color for e in entries if e.color)),
        min_size=min(sizes) if sizes else None,
        base_size=max(sizes) if sizes else None,
        has_italic=any(e.has_italic_variant for e in entries),
        weight=weights,
        family=family,
    )


class TypographyTokenMiner:

    def __init__(
        self,
        format_tokens: Optional[Sequence[str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.format_tokens = tuple(format_tokens) if format_tokens else FORMAT_TOKENS
        self.logger = logger or get_logger("typography")
        self.discarded = 0

    def classify(self, documents: Iterable) -> "OrderedDict[str, list]":
        """元素 → [TypoEntry, ...]，依 h1…h6、p 排序."""
        self.discarded = 0
        groups: dict[str, list] = {}
        for doc in as_documents(documents):
            for index, style in enumerate(text_styles(doc.data)):
                label = style.get("name") if isinstance(style, dict) else None
                try:
                    entry = divide_typo(style, self.format_tokens)
                except MalformedStyle as e:
                    self.discarded += 1
                    self.logger.warning(
                        "discard text style #%d %r in %s: %s", index, label, doc.path, e
                    )
                    continue
                if entry is None:
                    self.discarded += 1
                    self.logger.debug(
                        "discard text style %r in %s: no element/format token", label, doc.path
                    )
                    continue
                groups.setdefault(entry.element, []).append(entry)

        return OrderedDict(
            (key, groups[key]) for key in TYPOGRAPHY_ELEMENTS if key in groups
        )

    def mine(self, documents: Iterable, project_id) -> list:
        groups = self.classify(documents)
        tokens = [aggregate_entries(key, entries, project_id) for key, entries in groups.items()]
        self.logger.info(
            "mined %d typography tokens (%d styles discarded)", len(tokens), self.discarded
        )
        return tokens


def mine_typography(
    documents: Iterable,
    project_id,
    format_tokens: Optional[Sequence[str]] = None,
    logger: Optional[logging.Logger] = None,
) -> list:
    return TypographyTokenMiner(format_tokens=format_tokens, logger=logger).mine(documents, project_id)
