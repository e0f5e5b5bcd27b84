import pytest

from formfield_overlay import model_assets


def test_existing_model_is_used_as_is(tmp_path, monkeypatch):
    path = tmp_path / "pose.task"
    path.write_bytes(b"model")

    def _fail(*args, **kwargs):
        raise AssertionError("should not download")

    monkeypatch.setattr(model_assets, "_download_with_urllib", _fail)
    assert model_assets.ensure_task_model(str(path), "https://example.invalid/pose.task") == str(path)


def test_falls_back_to_curl(tmp_path, monkeypatch):
    path = tmp_path / "models" / "face.task"

    def _urllib(url, model_path, timeout_s):
        raise OSError("offline")

    class _Proc:
        returncode = 0
        stderr = ""

    def _curl(url, model_path):
        with open(model_path, "wb") as f:
            f.write(b"model")
        return _Proc()

    monkeypatch.setattr(model_assets, "_download_with_urllib", _urllib)
    monkeypatch.setattr(model_assets, "_download_with_curl", _curl)
    assert model_assets.ensure_task_model(str(path), "https://example.invalid/face.task") == str(path)
    assert path.read_bytes() == b"model"


def test_failed_download_explains_manual_fix(tmp_path, monkeypatch):
    path = tmp_path / "models" / "pose.task"

    def _urllib(url, model_path, timeout_s):
        with open(model_path, "wb") as f:
            f.write(b"partial")
        raise OSError("offline")

    monkeypatch.setattr(model_assets, "_download_with_urllib", _urllib)
    monkeypatch.setattr(model_assets, "_download_with_curl", lambda url, model_path: None)

    with pytest.raises(RuntimeError, match="curl -L -o") as exc_info:
        model_assets.ensure_task_model(str(path), "https://example.invalid/pose.task")
    assert isinstance(exc_info.value.__cause__, OSError)
    assert not path.exists()
