"""
TokenSynchronizer — 探勘結果與 store 對帳

每個 token 各自寫入；單筆失敗只記 log，不影響同批其他 token。
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .log import get_logger
from .store import COLOR_NATURAL_KEYS, TokenStore


@dataclass
class SyncReport:
    created: list = field(default_factory=list)
    updated: list = field(default_factory=list)
    unchanged: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.created)} created, {len(self.updated)} updated, "
            f"{len(self.unchanged)} unchanged, {len(self.failed)} failed"
        )


class TokenSynchronizer:

    def __init__(
        self,
        store: TokenStore,
        color_key: str = "value",
        logger: Optional[logging.Logger] = None,
    ):
        if color_key not in COLOR_NATURAL_KEYS:
            raise ValueError(f"unknown color natural key '{color_key}'")
        self.store = store
        self.color_key = color_key
        self.logger = logger or get_logger("sync")

    def sync_colors(self, tokens: Iterable) -> SyncReport:
        """不存在就新增；已存在的顏色不做更新."""
        report = SyncReport()
        for token in tokens:
            try:
                existing = self.store.find_color(
                    token.project_id,
                    natural_key=self.color_key,
                    value=token.value,
                    og_name=token.og_name,
                )
                if existing is not None:
                    report.unchanged.append(token)
                    continue
                self.store.create_color(token)
                report.created.append(token)
            except SQLAlchemyError as e:
                self.logger.error(
                    "failed to sync color %s (%s) for project %s: %s",
                    token.value, token.og_name, token.project_id, e,
                )
                report.failed.append(token)
        self.logger.info("colors: %s", report.summary())
        return report

    def sync_typography(self, tokens: Iterable) -> SyncReport:
        """不存在就新增；存在就整筆覆寫並把 checked 重設為 False."""
        report = SyncReport()
        for token in tokens:
            try:
                existing = self.store.find_typography(token.project_id, token.key)
                if existing is None:
                    self.store.create_typography(token)
                    report.created.append(token)
                else:
                    self.store.update_typography(existing, token)
                    report.updated.append(token)
            except SQLAlchemyError as e:
                self.logger.error(
                    "failed to sync typography %s for project %s: %s",
                    token.key, token.project_id, e,
                )
                report.failed.append(token)
        self.logger.info("typography: %s", report.summary())
        return report
