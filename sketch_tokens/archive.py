"""
Sketch 壓縮檔解壓 — 串流寫檔 + zip-slip 防護

.sketch 其實是 zip。每個 entry 解析成 destination 底下的絕對路徑，
相對路徑若含 '..'（或是絕對路徑）就跳過並記 log，不讓整批失敗。
全部 entry 處理完（寫入 / 跳過 / 失敗）後，最後寫入 .extraction.json，
scan 階段以此判斷解壓已完成。
"""

import asyncio
import json
import logging
import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from .log import get_logger

MANIFEST_NAME = ".extraction.json"
DEFAULT_CHUNK_SIZE = 64 * 1024

# 單一 entry 讀寫時可能出現的錯誤；zlib.error 不是 OSError（壞掉的 deflate 資料）
ENTRY_ERRORS = (
    OSError,
    zipfile.BadZipFile,
    zlib.error,
    RuntimeError,
    NotImplementedError,
    EOFError,
)


@dataclass
class ExtractionResult:
    """單一壓縮檔的解壓結果."""
    archive: str
    destination: str
    entries: int = 0
    written: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.written) + len(self.skipped) + len(self.failed)

    @property
    def complete(self) -> bool:
        return self.processed == self.entries

    def to_manifest(self) -> dict:
        return {
            "archive": os.path.basename(self.archive),
            "entries": self.entries,
            "written": len(self.written),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "completedAt": datetime.now(timezone.utc).isoformat(),
        }


def resolve_entry_path(destination: str, entry_name: str) -> Optional[str]:
    """回傳 entry 在 destination 內的絕對路徑；逃出 destination 時回傳 None."""
    root = os.path.abspath(destination)
    target = os.path.abspath(os.path.join(root, entry_name))
    relative = os.path.relpath(target, root)
    if relative == os.curdir or os.pardir in relative.split(os.sep):
        return None
    return target


class ArchiveExtractor:
    """把 zip entry 串流寫到 destination，回傳 ExtractionResult."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        write_manifest: bool = True,
    ):
        self.logger = logger or get_logger("archive")
        self.chunk_size = chunk_size
        self.write_manifest = write_manifest

    async def extract(self, archive_path: str, destination: str) -> ExtractionResult:
        destination = os.path.abspath(destination)
        await asyncio.to_thread(os.makedirs, destination, exist_ok=True)

        zf, infos = await asyncio.to_thread(_open_archive, archive_path)
        try:
            # 先取得 entry 總數，處理數等於總數才算完成
            result = ExtractionResult(
                archive=archive_path,
                destination=destination,
                entries=len(infos),
            )
            for info in infos:
                await self._extract_entry(zf, info, result)
        finally:
            await asyncio.to_thread(zf.close)

        if self.write_manifest:
            await asyncio.to_thread(_write_manifest, destination, result.to_manifest())
        self.logger.info(
            "extracted %s → %s (%d written, %d skipped, %d failed)",
            archive_path, destination,
            len(result.written), len(result.skipped), len(result.failed),
        )
        return result

    async def extract_all(self, jobs: Iterable[tuple]) -> list:
        """jobs: [(archive_path, destination), ...]；全部並行，回傳順序與輸入一致.

        任一壓縮檔失敗時，仍等其餘壓縮檔全部結束（各自寫完 manifest）才拋出第一個例外。
        """
        jobs = list(jobs)
        results = await asyncio.gather(
            *(self.extract(archive_path, destination) for archive_path, destination in jobs),
            return_exceptions=True,
        )
        errors = []
        for (archive_path, _), outcome in zip(jobs, results):
            if isinstance(outcome, BaseException):
                self.logger.error("failed to extract %s: %r", archive_path, outcome)
                errors.append(outcome)
        if errors:
            raise errors[0]
        return list(results)

    async def _extract_entry(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, result: ExtractionResult) -> None:
        name = info.filename
        target = resolve_entry_path(result.destination, name)
        if target is None:
            self.logger.warning(
                "[zip warn] ignoring maliciously crafted path in %s: %s",
                result.archive, name,
            )
            result.skipped.append(name)
            return

        if info.is_dir():
            await asyncio.to_thread(os.makedirs, target, exist_ok=True)
            result.written.append(target)
            return

        try:
            await asyncio.to_thread(self._copy_entry, zf, info, target)
        except ENTRY_ERRORS as e:
            self.logger.error("failed to extract %s from %s: %s", name, result.archive, e)
            await asyncio.to_thread(_remove_partial, target)
            result.failed.append(name)
            return
        result.written.append(target)

    def _copy_entry(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: str) -> None:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with zf.open(info) as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst, self.chunk_size)


def _open_archive(archive_path: str) -> tuple:
    zf = zipfile.ZipFile(archive_path)
    return zf, zf.infolist()


def _remove_partial(target: str) -> None:
    if os.path.isfile(target):
        os.remove(target)


def _write_manifest(destination: str, manifest: dict) -> str:
    path = os.path.join(destination, MANIFEST_NAME)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)
    return path


def is_extraction_complete(directory: str) -> bool:
    return os.path.isfile(os.path.join(directory, MANIFEST_NAME))


def read_manifest(directory: str) -> Optional[dict]:
    path = os.path.join(directory, MANIFEST_NAME)
    if not os.path.isfile(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def extract_archive(
    archive_path: str,
    destination: str,
    logger: Optional[logging.Logger] = None,
) -> ExtractionResult:
    return await ArchiveExtractor(logger=logger).extract(archive_path, destination)


def extract_archive_sync(
    archive_path: str,
    destination: str,
    logger: Optional[logging.Logger] = None,
) -> ExtractionResult:
    """extract_archive 的同步包裝."""
    return asyncio.run(extract_archive(archive_path, destination, logger))
