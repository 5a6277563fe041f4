"""
上傳 → 解壓 → 掃描 的流程

兩個階段在時間上分開：
  ingest_uploads  上傳當下執行：暫存 .sketch、並行解壓所有檔案
  scan_project    之後另外觸發：確認解壓完成、讀 document.json、探勘並寫入 store
"""

import asyncio
import json
import logging
import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .archive import ArchiveExtractor, is_extraction_complete
from .color_miner import ColorTokenMiner
from .errors import ExtractionPending, InternalFailure, NotAllowed, ProjectNotFound, UploadRejected
from .layout import (
    SKETCH_EXTENSION,
    extraction_dir,
    project_dir,
    sketch_dir,
    staged_archive_name,
    unzip_dir,
)
from .log import get_logger
from .models import SketchDocument
from .store import TokenStore
from .synchronizer import SyncReport, TokenSynchronizer
from .typography import TypographyTokenMiner

DOCUMENT_NAME = "document.json"


@dataclass
class Upload:
    """上傳層已存好的檔案：原始檔名 + 暫存路徑."""
    original_name: str
    stored_path: str


@dataclass
class IngestResult:
    project_id: int
    version: int
    directories: list = field(default_factory=list)
    extractions: list = field(default_factory=list)


@dataclass
class ScanResult:
    project_id: int
    version: int
    documents: list = field(default_factory=list)
    colors: list = field(default_factory=list)
    typography: list = field(default_factory=list)
    color_report: SyncReport = field(default_factory=SyncReport)
    typography_report: SyncReport = field(default_factory=SyncReport)
    discarded: dict = field(default_factory=dict)


# ════════════════════════════════════════════════════════════
# Ingest
# ════════════════════════════════════════════════════════════

def check_sketch_file(original_name: str) -> None:
    if os.path.splitext(original_name)[1] != SKETCH_EXTENSION:
        raise UploadRejected("Only Sketch files are allowed")


def stage_upload(upload: Upload, root: str, project_id, version: int) -> str:
    """複製到 projects/<id>/<version>/sketch/<name>.zip，回傳暫存路徑."""
    check_sketch_file(upload.original_name)
    target_dir = sketch_dir(root, project_id, version)
    os.makedirs(target_dir, exist_ok=True)
    target = os.path.join(target_dir, staged_archive_name(upload.original_name))
    shutil.copyfile(upload.stored_path, target)
    return target


async def ingest_uploads(
    uploads: Iterable[Upload],
    root: str,
    project_id,
    version: int,
    *,
    is_member: bool = True,
    extractor: Optional[ArchiveExtractor] = None,
    logger: Optional[logging.Logger] = None,
) -> IngestResult:
    """暫存並解壓一批上傳檔；全部解壓完成才回傳."""
    logger = logger or get_logger("pipeline")
    if not is_member:
        raise NotAllowed()

    uploads = list(uploads)
    if not uploads:
        raise UploadRejected("No sketch files in upload")
    # 先全部檢查，避免拒絕前已寫入部分檔案
    for upload in uploads:
        check_sketch_file(upload.original_name)

    extractor = extractor or ArchiveExtractor(logger=logger)
    try:
        staged = [
            await asyncio.to_thread(stage_upload, upload, root, project_id, version)
            for upload in uploads
        ]
        jobs = [
            (path, extraction_dir(root, project_id, version, os.path.basename(path)))
            for path in staged
        ]
        extractions = await extractor.extract_all(jobs)
    except (OSError, zipfile.BadZipFile, zlib.error) as e:
        logger.error("ingest failed for project %s v%s: %s", project_id, version, e)
        raise InternalFailure() from e

    return IngestResult(
        project_id=project_id,
        version=version,
        directories=[destination for _, destination in jobs],
        extractions=extractions,
    )


# ════════════════════════════════════════════════════════════
# Scan
# ════════════════════════════════════════════════════════════

def extracted_directories(root: str, project_id, version: int) -> list:
    base = unzip_dir(root, project_id, version)
    if not os.path.isdir(base):
        return []
    return [
        os.path.join(base, name)
        for name in sorted(os.listdir(base))
        if os.path.isdir(os.path.join(base, name))
    ]


def _read_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


async def load_document(
    directory: str,
    logger: Optional[logging.Logger] = None,
) -> Optional[SketchDocument]:
    logger = logger or get_logger("pipeline")
    path = os.path.join(directory, DOCUMENT_NAME)
    try:
        data = await asyncio.to_thread(_read_json, path)
    except (OSError, ValueError) as e:
        logger.warning("skip %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("skip %s: document root is %s, expected object", path, type(data).__name__)
        return None
    return SketchDocument(path=path, data=data)


async def load_documents(
    directories: Sequence[str],
    logger: Optional[logging.Logger] = None,
) -> list:
    documents = await asyncio.gather(*(load_document(d, logger) for d in directories))
    return [doc for doc in documents if doc is not None]


async def scan_project(
    store: TokenStore,
    root: str,
    project_id,
    version: int,
    *,
    directories: Optional[Sequence[str]] = None,
    format_tokens: Optional[Sequence[str]] = None,
    color_key: str = "value",
    logger: Optional[logging.Logger] = None,
) -> ScanResult:
    """探勘已解壓的文件並寫入 store；解壓未完成時拋 ExtractionPending."""
    logger = logger or get_logger("pipeline")
    if directories is None:
        if not os.path.isdir(project_dir(root, project_id, version)):
            raise ProjectNotFound()
        directories = extracted_directories(root, project_id, version)

    pending = [d for d in directories if not is_extraction_complete(d)]
    if not directories or pending:
        logger.info("project %s v%s still extracting: %s", project_id, version, pending or "no output yet")
        raise ExtractionPending()

    documents = await load_documents(directories, logger)
    color_miner = ColorTokenMiner(logger=logger)
    typo_miner = TypographyTokenMiner(format_tokens=format_tokens, logger=logger)
    colors = color_miner.mine(documents, project_id)
    typography = typo_miner.mine(documents, project_id)

    synchronizer = TokenSynchronizer(store, color_key=color_key, logger=logger)
    return ScanResult(
        project_id=project_id,
        version=version,
        documents=[doc.path for doc in documents],
        colors=colors,
        typography=typography,
        color_report=synchronizer.sync_colors(colors),
        typography_report=synchronizer.sync_typography(typography),
        discarded={
            "documents": len(directories) - len(documents),
            "colors": color_miner.discarded,
            "typography": typo_miner.discarded,
        },
    )
