"""
上傳目錄結構

  <root>/projects/<projectId>/<version>/sketch/<name>.zip   # 上傳的原始檔
  <root>/projects/<projectId>/<version>/unzip/<name>/...     # 解壓後的文件目錄

目錄名稱需與既有資料相容，不可更改格式。
"""

import os
from typing import Optional

SKETCH_EXTENSION = ".sketch"


def project_dir(root: str, project_id, version: int) -> str:
    return os.path.join(root, "projects", str(project_id), str(version))


def sketch_dir(root: str, project_id, version: int) -> str:
    return os.path.join(project_dir(root, project_id, version), "sketch")


def unzip_dir(root: str, project_id, version: int) -> str:
    return os.path.join(project_dir(root, project_id, version), "unzip")


def staged_archive_name(original_name: str) -> str:
    """'Home Page.sketch' → 'Home Page.zip'（取第一個 .sketch 之前的部分）.

    上傳檔名由用戶端提供，只取 basename，目錄部分一律丟掉。
    """
    base = os.path.basename(original_name.replace("\\", "/"))
    return f"{base.split(SKETCH_EXTENSION)[0]}.zip"


def normalize_archive_name(filename: str) -> str:
    """'Home Page.zip' → 'home_page'：解壓目錄名稱（取第一個 .zip 之前的部分）."""
    base = os.path.basename(filename).split(".zip")[0]
    if base.endswith(SKETCH_EXTENSION):
        base = base[: -len(SKETCH_EXTENSION)]
    return "_".join(base.lower().split(" "))


def extraction_dir(root: str, project_id, version: int, archive_name: str) -> str:
    return os.path.join(unzip_dir(root, project_id, version), normalize_archive_name(archive_name))


def list_versions(root: str, project_id) -> list:
    base = os.path.join(root, "projects", str(project_id))
    if not os.path.isdir(base):
        return []
    return sorted(int(d) for d in os.listdir(base) if d.isdigit())


def latest_version(root: str, project_id) -> Optional[int]:
    versions = list_versions(root, project_id)
    return versions[-1] if versions else None


def next_version(root: str, project_id) -> int:
    """沒有外部 DB 的情況下（CLI），從磁碟上的版本目錄推算下一版."""
    latest = latest_version(root, project_id)
    return (latest or 0) + 1
