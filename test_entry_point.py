import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), 'backend')))
import importlib.util

from flask import Flask

ROOT = os.path.dirname(os.path.abspath(__file__))


def test_root_entry_point_builds_app_from_source(monkeypatch, tmp_path):
    monkeypatch.setenv("FILES_DB_PATH", str(tmp_path / "files.db"))
    spec = importlib.util.spec_from_file_location("entry_point", os.path.join(ROOT, "app.py"))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    assert isinstance(module.app, Flask)
    assert module.backend_app.__file__ == os.path.join(ROOT, "backend", "app.py")
    assert module.app.test_client().get("/health").get_json()["ok"] is True
