"""
Smoke tests：驗證套件可匯入、版本、公開 API 與錯誤碼存在。
"""
import pytest


def test_import_package():
    """套件可正常匯入"""
    import sketch_tokens
    assert sketch_tokens.__version__ == "0.1.0"


def test_public_api():
    """公開 API 可從 sketch_tokens 取得"""
    from sketch_tokens import (
        __version__,
        ArchiveExtractor,
        extract_archive,
        color_from_rgba,
        mine_colors,
        mine_typography,
        divide_typo,
        TokenSynchronizer,
        create_store,
        ingest_uploads,
        scan_project,
        load_config,
    )
    assert callable(extract_archive)
    assert callable(color_from_rgba)
    assert callable(mine_colors)
    assert callable(mine_typography)
    assert callable(divide_typo)
    assert callable(ingest_uploads)
    assert callable(scan_project)
    assert callable(load_config)


@pytest.mark.parametrize("name, code, status", [
    ("ExtractionPending", 0, 202),
    ("UploadRejected", 1, 403),
    ("NotAllowed", 2, 403),
    ("ProjectNotFound", 3, 404),
    ("InternalFailure", 3, 500),
])
def test_error_codes(name, code, status):
    from sketch_tokens import errors
    err = getattr(errors, name)()
    assert isinstance(err, errors.PipelineError)
    assert err.code == code
    assert err.status == status
    assert err.to_dict() == {"code": code, "message": err.message}


def test_error_custom_message():
    from sketch_tokens.errors import UploadRejected
    err = UploadRejected("Only Sketch files are allowed")
    assert str(err) == "Only Sketch files are allowed"
    assert err.to_dict() == {"code": 1, "message": "Only Sketch files are allowed"}
