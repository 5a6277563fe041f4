#!/usr/bin/env python3
"""
sketch-tokens CLI — Sketch 檔 → design tokens

  python -m sketch_tokens.cli extract <project> <file.sketch>...  # 暫存 + 解壓
  python -m sketch_tokens.cli scan <project> [--project-version N]  # 探勘 + 寫入 DB
  python -m sketch_tokens.cli preview <unzip-dir>...              # 只預覽，不寫 DB
  python -m sketch_tokens.cli watch <project> <drop-dir>          # 監聽資料夾自動解壓
"""

import argparse
import asyncio
import json
import os
import threading
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import __version__
from .color_miner import mine_colors
from .config import (
    DEFAULT_CONFIG_PATH,
    color_natural_key,
    database_url,
    format_tokens,
    load_config,
    upload_root,
)
from .errors import ExtractionPending, PipelineError
from .layout import SKETCH_EXTENSION, latest_version, next_version
from .log import configure_logging
from .pipeline import Upload, ingest_uploads, load_documents, scan_project
from .store import create_store
from .typography import mine_typography


async def perform_extract(project_id: int, files: list, config: dict, version=None):
    """暫存並解壓，extract 與 watch 共用."""
    root = upload_root(config)
    version = version or next_version(root, project_id)
    print(f"📦 Extracting {len(files)} file(s) into project {project_id} v{version}")

    uploads = [Upload(original_name=os.path.basename(f), stored_path=f) for f in files]
    try:
        result = await ingest_uploads(uploads, root, project_id, version)
    except PipelineError as e:
        print(f"   ❌ {json.dumps(e.to_dict(), ensure_ascii=False)}")
        return None

    for extraction in result.extractions:
        print(
            f"   ✅ {extraction.destination} "
            f"({len(extraction.written)} written, {len(extraction.skipped)} skipped, "
            f"{len(extraction.failed)} failed)"
        )
    return result


async def cmd_extract(args, config: dict):
    await perform_extract(args.project, args.files, config, version=args.project_version)


async def cmd_scan(args, config: dict):
    """Scan: 讀取解壓結果 → 探勘 color / typography → 同步 DB."""
    root = upload_root(config)
    version = args.project_version or latest_version(root, args.project)
    if version is None:
        print(f"❌ 找不到專案 {args.project} 的任何版本，請先執行 'sketch-tokens extract'。")
        return 1

    print(f"🔍 Scanning project {args.project} v{version}")
    store = create_store(database_url(config), echo=config.get("database", {}).get("echo", False))
    try:
        result = await scan_project(
            store,
            root,
            args.project,
            version,
            format_tokens=format_tokens(config),
            color_key=color_natural_key(config),
        )
    except ExtractionPending as e:
        print(f"   ⏳ {e.message}，請稍後再試。")
        return 0
    except PipelineError as e:
        print(f"   ❌ {json.dumps(e.to_dict(), ensure_ascii=False)}")
        return 1
    finally:
        store.db.close()

    print(f"   📄 {len(result.documents)} document(s)")
    print(f"   🎨 Colors: {result.color_report.summary()}")
    print(f"   🔤 Typography: {result.typography_report.summary()}")
    discarded = sum(result.discarded.values())
    if discarded:
        print(f"   ⚠️  {discarded} entries discarded (see log for details)")
    return 0


def cmd_preview(args, config: dict):
    """預覽探勘結果（不寫 DB）."""
    documents = asyncio.run(load_documents(args.dirs))
    if not documents:
        print("❌ 找不到可讀取的 document.json。")
        return 1

    colors = mine_colors(documents, args.project)
    typography = mine_typography(documents, args.project, format_tokens=format_tokens(config))

    print(f"🎨 Colors ({len(colors)})")
    for token in colors:
        flag = "  ⚠️ double name" if token.double_name else ""
        print(f"   {token.value}  {token.name}  ({token.og_name}){flag}")
    print(f"\n🔤 Typography ({len(typography)})")
    for token in typography:
        print(
            f"   {token.key:<3} {token.family or '?'} {'/'.join(token.weight) or '-'}  "
            f"{token.min_size}–{token.base_size}  colors={','.join(token.colors) or '-'}"
            f"{'  italic' if token.has_italic else ''}"
        )
    return 0


class ChangeHandler(FileSystemEventHandler):
    """.sketch 檔新增/變更事件處理器，帶 debounce 防抖。"""

    def __init__(self, callback, loop: asyncio.AbstractEventLoop, debounce: float = 1.0):
        self.callback = callback
        self.loop = loop
        self.last_trigger = 0.0
        self.debounce_seconds = debounce

    def on_created(self, event):
        self._handle(event)

    def on_modified(self, event):
        self._handle(event)

    def _handle(self, event):
        if event.is_directory:
            return
        if not event.src_path.endswith(SKETCH_EXTENSION):
            return
        current_time = time.time()
        if current_time - self.last_trigger < self.debounce_seconds:
            return
        self.last_trigger = current_time
        print(f"\n🔄 Sketch file changed: {event.src_path}")
        # 透過 threadsafe 把 coroutine 丟進 loop（loop 在獨立執行緒中 run_forever）
        asyncio.run_coroutine_threadsafe(self.callback(event.src_path), self.loop)


def cmd_watch(args, config: dict):
    """Watch: 監聽資料夾，新的 .sketch 檔自動解壓成下一個版本."""
    drop_dir = args.dir
    print(f"👀 Watching for .sketch files in '{drop_dir}' (project {args.project})...")
    print("   Press Ctrl+C to stop.")

    loop = asyncio.new_event_loop()

    async def extract_task(path: str):
        await perform_extract(args.project, [path], config)

    def run_loop():
        asyncio.set_event_loop(loop)
        loop.run_forever()

    loop_thread = threading.Thread(target=run_loop, daemon=True)
    loop_thread.start()

    event_handler = ChangeHandler(extract_task, loop, debounce=args.debounce)
    observer = Observer()
    observer.schedule(event_handler, path=drop_dir, recursive=False)
    observer.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n👋 Stopping watch...")
        observer.stop()
    finally:
        observer.join()
        loop.call_soon_threadsafe(loop.stop)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="sketch-tokens: mine design tokens from Sketch files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config path")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    extract_p = sub.add_parser("extract", help="Stage and unzip .sketch files",
        epilog="Examples:\n  sketch-tokens extract 12 'Home Page.sketch'\n  sketch-tokens extract 12 a.sketch b.sketch --project-version 3",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    extract_p.add_argument("project", type=int, help="Project ID")
    extract_p.add_argument("files", nargs="+", help=".sketch files")
    extract_p.add_argument("--project-version", type=int, help="Project version (default: next on disk)")

    scan_p = sub.add_parser("scan", help="Mine tokens and sync them to the database",
        epilog="Examples:\n  sketch-tokens scan 12\n  sketch-tokens scan 12 --project-version 3",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    scan_p.add_argument("project", type=int, help="Project ID")
    scan_p.add_argument("--project-version", type=int, help="Project version (default: latest on disk)")

    preview_p = sub.add_parser("preview", help="Print mined tokens without touching the database",
        epilog="Examples:\n  sketch-tokens preview uploads/projects/12/3/unzip/home_page",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    preview_p.add_argument("dirs", nargs="+", help="Extracted document directories")
    preview_p.add_argument("--project", type=int, default=0, help="Project ID to stamp on tokens")

    watch_p = sub.add_parser("watch", help="Watch a folder and extract new .sketch files",
        epilog="Examples:\n  sketch-tokens watch 12 ./drop",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    watch_p.add_argument("project", type=int, help="Project ID")
    watch_p.add_argument("dir", help="Folder to watch")
    watch_p.add_argument("--debounce", type=float, default=1.0, help="Seconds between triggers")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)
    log_cfg = config.get("logging", {}) if isinstance(config.get("logging"), dict) else {}
    configure_logging(
        "DEBUG" if args.verbose else log_cfg.get("level", "INFO"),
        log_cfg.get("file"),
    )

    if args.command == "extract":
        asyncio.run(cmd_extract(args, config))
    elif args.command == "scan":
        return asyncio.run(cmd_scan(args, config))
    elif args.command == "preview":
        return cmd_preview(args, config)
    elif args.command == "watch":
        cmd_watch(args, config)
    else:
        parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
