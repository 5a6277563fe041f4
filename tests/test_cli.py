"""
CLI 整合測試：extract → scan → preview，全部在 tmp_path 內。
"""
import json
import logging
import os
import zipfile

import pytest

from sketch_tokens.cli import build_parser, main


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("sketch_tokens")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "sketch-tokens.config.json"
    path.write_text(json.dumps({
        "storage": {"uploadRoot": str(tmp_path / "uploads")},
        "database": {"url": f"sqlite:///{tmp_path / 'tokens.db'}"},
    }), encoding="utf-8")
    return str(path)


def make_sketch(path):
    document = {
        "assets": {"colorAssets": [
            {"name": "Brand", "color": {"red": 1, "green": 0, "blue": 0, "alpha": 1}},
        ]},
        "layerTextStyles": {"objects": [{
            "name": "H1/Desktop",
            "value": {"textStyle": {"encodedAttributes": {
                "MSAttributedStringFontAttribute": {"attributes": {"name": "Inter-Bold", "size": 32}},
            }}},
        }]},
    }
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("document.json", json.dumps(document))
    return str(path)


def test_extract_then_scan(tmp_path, config_path, capsys):
    sketch = make_sketch(tmp_path / "Home Page.sketch")

    assert main(["-c", config_path, "extract", "9", sketch]) == 0
    out = capsys.readouterr().out
    assert "project 9 v1" in out
    unzip = tmp_path / "uploads" / "projects" / "9" / "1" / "unzip" / "home_page"
    assert (unzip / "document.json").is_file()
    assert (tmp_path / "uploads" / "projects" / "9" / "1" / "sketch" / "Home Page.zip").is_file()

    assert main(["-c", config_path, "scan", "9"]) == 0
    out = capsys.readouterr().out
    assert "Colors: 1 created" in out
    assert "Typography: 1 created" in out

    # 第二次 scan：顏色不重複新增，字級更新
    assert main(["-c", config_path, "scan", "9", "--project-version", "1"]) == 0
    out = capsys.readouterr().out
    assert "Colors: 0 created, 0 updated, 1 unchanged" in out
    assert "Typography: 0 created, 1 updated" in out


def test_extract_twice_creates_next_version(tmp_path, config_path):
    sketch = make_sketch(tmp_path / "a.sketch")
    main(["-c", config_path, "extract", "9", sketch])
    main(["-c", config_path, "extract", "9", sketch])
    assert sorted(os.listdir(tmp_path / "uploads" / "projects" / "9")) == ["1", "2"]


def test_extract_rejects_non_sketch(tmp_path, config_path, capsys):
    other = tmp_path / "notes.txt"
    other.write_text("hi")
    main(["-c", config_path, "extract", "9", str(other)])
    out = capsys.readouterr().out
    assert '"code": 1' in out


def test_scan_without_versions(config_path, capsys):
    assert main(["-c", config_path, "scan", "77"]) == 1
    assert "找不到專案" in capsys.readouterr().out


def test_scan_pending(tmp_path, config_path, capsys):
    (tmp_path / "uploads" / "projects" / "9" / "1" / "unzip" / "half").mkdir(parents=True)
    assert main(["-c", config_path, "scan", "9"]) == 0
    assert "⏳" in capsys.readouterr().out


def test_preview(tmp_path, config_path, capsys):
    sketch = make_sketch(tmp_path / "Home.sketch")
    main(["-c", config_path, "extract", "9", sketch])
    capsys.readouterr()
    unzip = tmp_path / "uploads" / "projects" / "9" / "1" / "unzip" / "home"

    assert main(["-c", config_path, "preview", str(unzip)]) == 0
    out = capsys.readouterr().out
    assert "#ff0000  Brand  (red)" in out
    assert "h1  Inter Bold" in out


def test_preview_without_documents(tmp_path, config_path, capsys):
    assert main(["-c", config_path, "preview", str(tmp_path)]) == 1


def test_no_command_prints_help(config_path, capsys):
    assert main(["-c", config_path]) == 0
    assert "usage" in capsys.readouterr().out


def test_parser_watch_defaults():
    args = build_parser().parse_args(["watch", "3", "./drop"])
    assert args.project == 3
    assert args.dir == "./drop"
    assert args.debounce == 1.0
