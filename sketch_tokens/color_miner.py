"""
Color token 探勘

依序走訪每份文件的 assets.colorAssets：
  - 以 hex 值去重，第一次出現的宣告名稱為準
  - 不同 hex 卻對應同一個 ogName 時，兩邊（含先前那筆）都標 double_name
"""

import logging
from typing import Iterable, Optional

from .colors import color_from_sketch
from .log import get_logger
from .models import ColorToken, as_documents


def color_assets(document: dict) -> list:
    assets = document.get("assets") if isinstance(document, dict) else None
    if not isinstance(assets, dict):
        return []
    raw = assets.get("colorAssets")
    return raw if isinstance(raw, list) else []


class ColorTokenMiner:

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("colors")
        self.discarded = 0

    def mine(self, documents: Iterable, project_id) -> list:
        self.discarded = 0
        tokens: list[ColorToken] = []
        seen_values: set[str] = set()
        first_by_name: dict[str, ColorToken] = {}

        for doc in as_documents(documents):
            for index, asset in enumerate(color_assets(doc.data)):
                try:
                    color = color_from_sketch(asset["color"])
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    self.discarded += 1
                    self.logger.debug("discard color asset #%d in %s: %r", index, doc.path, e)
                    continue

                value = color.css_value
                if value in seen_values:
                    continue
                seen_values.add(value)

                token = ColorToken(
                    project_id=project_id,
                    name=asset.get("name") or color.name,
                    og_name=color.name,
                    value=value,
                )
                first = first_by_name.get(color.name)
                if first is not None:
                    first.double_name = True
                    token.double_name = True
                else:
                    first_by_name[color.name] = token
                tokens.append(token)

        self.logger.info("mined %d color tokens (%d discarded)", len(tokens), self.discarded)
        return tokens


def mine_colors(documents: Iterable, project_id, logger: Optional[logging.Logger] = None) -> list:
    return ColorTokenMiner(logger=logger).mine(documents, project_id)
