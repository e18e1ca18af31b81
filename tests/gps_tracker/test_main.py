import runpy
import sys

import pytest
import uvicorn

from gps_tracker.config import TrackerSettings
from gps_tracker.main import run


def test_settings_types():
    cfg = TrackerSettings()
    assert isinstance(cfg.port, int)
    assert isinstance(cfg.movement_window_size, int)
    assert isinstance(cfg.cors_origins, list)


def test_cors_origins_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example")
    cfg = TrackerSettings()
    assert cfg.cors_origins == ["http://a.example", "http://b.example"]


def test_run_print_config_hides_password(capfd):
    cfg = TrackerSettings(smtp_password="hunter2")
    code = run(argv=["--print-config"], cfg=cfg)
    assert code == 0

    out, _ = capfd.readouterr()
    assert "movement_window_size" in out
    assert "hunter2" not in out


def test_run_serve_calls_uvicorn(monkeypatch):
    called = {}

    def fake_run(app, host, port, log_level):
        called["app"] = app
        called["host"] = host
        called["port"] = port
        called["log_level"] = log_level

    monkeypatch.setattr(uvicorn, "run", fake_run)

    cfg = TrackerSettings(host="127.0.0.1", port=9999, log_level="INFO", alert_to=None)
    code = run(argv=["--serve"], cfg=cfg)

    assert code == 0
    assert called["host"] == "127.0.0.1"
    assert called["port"] == 9999
    assert called["log_level"] == "info"
    assert called["app"].state.service is not None
    called["app"].state.service.close()


def test_run_returns_1_on_unexpected_exception(monkeypatch):
    import gps_tracker.main as m

    monkeypatch.setattr(m, "build_parser", lambda: (_ for _ in ()).throw(RuntimeError("boom")))
    code = m.run(argv=[])
    assert code == 1


def test_module_entrypoint_exits_cleanly(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["gps_tracker"])

    # Ensure runpy executes a fresh copy (avoid RuntimeWarning)
    sys.modules.pop("gps_tracker.main", None)

    with pytest.raises(SystemExit) as exc:
        runpy.run_module("gps_tracker.main", run_name="__main__")

    assert exc.value.code == 0
