"""
sketch-tokens — Sketch 設計檔 → design tokens（Python 管線）

解壓上傳的 .sketch（zip-slip 防護），從 document.json 探勘色票與字級樣式，
去重、命名後與 DB 中既有 token 對帳。
"""

__version__ = "0.1.0"

from .archive import (
    ArchiveExtractor,
    ExtractionResult,
    extract_archive,
    extract_archive_sync,
    is_extraction_complete,
)
from .colors import NormalizedColor, color_from_rgba, nearest_color_name
from .color_miner import ColorTokenMiner, mine_colors
from .typography import TypographyTokenMiner, divide_typo, mine_typography
from .models import ColorToken, TypographyToken, TypoEntry, SketchDocument
from .store import TokenStore, create_store
from .synchronizer import SyncReport, TokenSynchronizer
from .pipeline import Upload, ingest_uploads, scan_project
from .config import load_config, validate_config
from .errors import PipelineError, ExtractionPending, UploadRejected, NotAllowed

__all__ = [
    "__version__",
    "ArchiveExtractor",
    "ExtractionResult",
    "extract_archive",
    "extract_archive_sync",
    "is_extraction_complete",
    "NormalizedColor",
    "color_from_rgba",
    "nearest_color_name",
    "ColorTokenMiner",
    "mine_colors",
    "TypographyTokenMiner",
    "divide_typo",
    "mine_typography",
    "ColorToken",
    "TypographyToken",
    "TypoEntry",
    "SketchDocument",
    "TokenStore",
    "create_store",
    "SyncReport",
    "TokenSynchronizer",
    "Upload",
    "ingest_uploads",
    "scan_project",
    "load_config",
    "validate_config",
    "PipelineError",
    "ExtractionPending",
    "UploadRejected",
    "NotAllowed",
]
