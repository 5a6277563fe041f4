"""
ArchiveExtractor 測試：zip-slip 防護、entry 計數、單筆失敗不中斷整批、完成 manifest。
全部使用 tmp_path，壓縮檔以 zipfile 現場產生。
"""
import asyncio
import json
import os
import struct
import threading
import zipfile
from unittest.mock import patch

import pytest

import sketch_tokens.archive as archive_module
from sketch_tokens.archive import (
    MANIFEST_NAME,
    ArchiveExtractor,
    extract_archive,
    extract_archive_sync,
    is_extraction_complete,
    read_manifest,
    resolve_entry_path,
)


# ─── helper ──────────────────────────────────────────────────────────────────

def make_zip(path, entries):
    """entries: {name: bytes | str}；名稱原樣寫入（可含 '..'）。"""
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return str(path)


def make_deflated_zip(path, entries):
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return str(path)


def corrupt_entry(path, name):
    """把 entry 壓縮資料開頭改成無效的 deflate block（BTYPE=11）。"""
    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo(name)
    with open(path, "r+b") as f:
        f.seek(info.header_offset)
        header = f.read(30)
        name_len, extra_len = struct.unpack("<HH", header[26:30])
        f.seek(info.header_offset + 30 + name_len + extra_len)
        f.write(b"\xff" * 8)


def all_files(root):
    found = []
    for dirpath, _, files in os.walk(root):
        for f in files:
            found.append(os.path.join(dirpath, f))
    return sorted(found)


# ─── resolve_entry_path ──────────────────────────────────────────────────────

class TestResolveEntryPath:
    def test_plain_entry_resolves_inside(self, tmp_path):
        target = resolve_entry_path(str(tmp_path), "a/document.json")
        assert target == os.path.join(str(tmp_path), "a", "document.json")

    def test_parent_traversal_rejected(self, tmp_path):
        assert resolve_entry_path(str(tmp_path), "a/../../etc/passwd") is None
        assert resolve_entry_path(str(tmp_path), "../outside.txt") is None

    def test_absolute_path_rejected(self, tmp_path):
        assert resolve_entry_path(str(tmp_path), "/etc/passwd") is None

    def test_inner_dotdot_that_stays_inside_is_allowed(self, tmp_path):
        target = resolve_entry_path(str(tmp_path), "a/b/../c.json")
        assert target == os.path.join(str(tmp_path), "a", "c.json")

    def test_destination_itself_rejected(self, tmp_path):
        assert resolve_entry_path(str(tmp_path), "a/..") is None

    def test_dotdot_prefixed_name_is_not_traversal(self, tmp_path):
        target = resolve_entry_path(str(tmp_path), "..hidden/file")
        assert target == os.path.join(str(tmp_path), "..hidden", "file")


# ─── extract ─────────────────────────────────────────────────────────────────

class TestExtract:
    def test_zip_slip_entry_skipped_others_written(self, tmp_path):
        archive = make_zip(tmp_path / "evil.zip", {
            "a/../../etc/passwd": b"root:x:0:0",
            "a/document.json": b"{}",
        })
        dst = tmp_path / "root" / "dst"

        result = asyncio.run(extract_archive(archive, str(dst)))

        assert (dst / "a" / "document.json").read_bytes() == b"{}"
        assert not (tmp_path / "root" / "etc" / "passwd").exists()
        outside = [f for f in all_files(tmp_path / "root") if not f.startswith(str(dst))]
        assert outside == []
        assert result.skipped == ["a/../../etc/passwd"]
        assert result.complete

    def test_processed_equals_declared_entry_count(self, tmp_path):
        archive = make_zip(tmp_path / "doc.zip", {
            "document.json": b"{}",
            "meta.json": b"{}",
            "pages/1.json": b"{}",
            "../escape.txt": b"nope",
            "previews/": b"",
        })
        result = asyncio.run(extract_archive(archive, str(tmp_path / "out")))
        assert result.entries == 5
        assert result.processed == 5
        assert len(result.written) == 4
        assert len(result.skipped) == 1
        assert (tmp_path / "out" / "previews").is_dir()

    def test_nested_directories_created(self, tmp_path):
        archive = make_zip(tmp_path / "deep.zip", {"pages/a/b/c.json": b'{"x": 1}'})
        asyncio.run(extract_archive(archive, str(tmp_path / "out")))
        assert json.loads((tmp_path / "out" / "pages" / "a" / "b" / "c.json").read_text()) == {"x": 1}

    def test_large_entry_streamed_intact(self, tmp_path):
        payload = os.urandom(300 * 1024)
        archive = make_zip(tmp_path / "big.zip", {"images/big.png": payload})
        extractor = ArchiveExtractor(chunk_size=4096)
        asyncio.run(extractor.extract(archive, str(tmp_path / "out")))
        assert (tmp_path / "out" / "images" / "big.png").read_bytes() == payload

    def test_corrupt_deflate_entry_counted_and_batch_continues(self, tmp_path):
        archive = make_deflated_zip(tmp_path / "doc.zip", {
            "broken.json": json.dumps({"k": "x" * 5000}),
            "document.json": b"{}",
        })
        corrupt_entry(archive, "broken.json")

        result = asyncio.run(ArchiveExtractor().extract(archive, str(tmp_path / "out")))

        assert result.failed == ["broken.json"]
        assert result.processed == result.entries == 2
        assert (tmp_path / "out" / "document.json").exists()
        assert not (tmp_path / "out" / "broken.json").exists()
        assert is_extraction_complete(str(tmp_path / "out"))
        assert read_manifest(str(tmp_path / "out"))["failed"] == 1

    def test_invalid_archive_raises(self, tmp_path):
        bogus = tmp_path / "not-a-zip.zip"
        bogus.write_bytes(b"definitely not a zip")
        with pytest.raises(zipfile.BadZipFile):
            asyncio.run(extract_archive(str(bogus), str(tmp_path / "out")))

    def test_sync_wrapper(self, tmp_path):
        archive = make_zip(tmp_path / "doc.zip", {"document.json": b"{}"})
        result = extract_archive_sync(archive, str(tmp_path / "out"))
        assert result.complete


# ─── manifest ────────────────────────────────────────────────────────────────

class TestManifest:
    def test_manifest_written_after_extraction(self, tmp_path):
        archive = make_zip(tmp_path / "doc.zip", {"document.json": b"{}", "../x": b""})
        out = tmp_path / "out"
        assert not is_extraction_complete(str(out))

        asyncio.run(extract_archive(archive, str(out)))

        assert is_extraction_complete(str(out))
        manifest = read_manifest(str(out))
        assert manifest["archive"] == "doc.zip"
        assert manifest["entries"] == 2
        assert manifest["written"] == 1
        assert manifest["skipped"] == 1
        assert manifest["failed"] == 0

    def test_manifest_can_be_disabled(self, tmp_path):
        archive = make_zip(tmp_path / "doc.zip", {"document.json": b"{}"})
        extractor = ArchiveExtractor(write_manifest=False)
        asyncio.run(extractor.extract(archive, str(tmp_path / "out")))
        assert not (tmp_path / "out" / MANIFEST_NAME).exists()

    def test_read_manifest_missing_returns_none(self, tmp_path):
        assert read_manifest(str(tmp_path)) is None


# ─── extract_all ─────────────────────────────────────────────────────────────

def test_extract_all_runs_every_archive_and_keeps_order(tmp_path):
    jobs = []
    for i in range(3):
        archive = make_zip(tmp_path / f"doc{i}.zip", {"document.json": json.dumps({"i": i})})
        jobs.append((archive, str(tmp_path / "out" / f"doc{i}")))

    results = asyncio.run(ArchiveExtractor().extract_all(jobs))

    assert [os.path.basename(r.destination) for r in results] == ["doc0", "doc1", "doc2"]
    for i in range(3):
        data = json.loads((tmp_path / "out" / f"doc{i}" / "document.json").read_text())
        assert data == {"i": i}
        assert is_extraction_complete(str(tmp_path / "out" / f"doc{i}"))


def test_extract_all_waits_for_every_archive_before_raising(tmp_path):
    bogus = tmp_path / "broken.zip"
    bogus.write_bytes(b"definitely not a zip")
    good = make_zip(tmp_path / "good.zip", {"document.json": b"{}", "meta.json": b"{}"})
    jobs = [
        (str(bogus), str(tmp_path / "out" / "broken")),
        (good, str(tmp_path / "out" / "good")),
    ]

    with pytest.raises(zipfile.BadZipFile):
        asyncio.run(ArchiveExtractor().extract_all(jobs))

    assert is_extraction_complete(str(tmp_path / "out" / "good"))
    assert (tmp_path / "out" / "good" / "document.json").exists()
    assert not is_extraction_complete(str(tmp_path / "out" / "broken"))


def test_blocking_file_calls_run_off_the_event_loop_thread(tmp_path):
    archive = make_zip(tmp_path / "doc.zip", {"document.json": b"{}"})
    threads = {}
    real_open = archive_module._open_archive
    real_makedirs = os.makedirs

    def recording_open(path):
        threads["open"] = threading.get_ident()
        return real_open(path)

    def recording_makedirs(path, *args, **kwargs):
        threads.setdefault("makedirs", threading.get_ident())
        return real_makedirs(path, *args, **kwargs)

    async def run():
        threads["loop"] = threading.get_ident()
        return await ArchiveExtractor().extract(archive, str(tmp_path / "out"))

    with patch.object(archive_module, "_open_archive", recording_open), \
            patch.object(archive_module.os, "makedirs", recording_makedirs):
        result = asyncio.run(run())

    assert result.complete
    assert threads["open"] != threads["loop"]
    assert threads["makedirs"] != threads["loop"]
