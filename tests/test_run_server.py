from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import create_engine, inspect

from complianceiq.utils.seed import initialise_database
from scripts import run_server


@pytest.fixture
def uvicorn_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict[str, Any]]]:
    calls: list[tuple[str, dict[str, Any]]] = []

    def fake_run(app: str, **kwargs: Any) -> None:
        calls.append((app, kwargs))

    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)
    return calls


def test_main_runs_uvicorn_with_reload(
    uvicorn_calls: list[tuple[str, dict[str, Any]]],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(run_server, "ensure_database", lambda: False)

    run_server.main(["--port", "9001"])

    assert uvicorn_calls == [
        ("complianceiq.web.main:app", {"host": "0.0.0.0", "port": 9001, "reload": True})
    ]
    assert "Created missing database tables" in capsys.readouterr().out


def test_no_reload_flag(
    uvicorn_calls: list[tuple[str, dict[str, Any]]], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(run_server, "ensure_database", lambda: True)

    run_server.main(["--host", "127.0.0.1", "--no-reload"])

    app, kwargs = uvicorn_calls[0]
    assert app == run_server.APP_PATH
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["reload"] is False


def test_database_failure_does_not_stop_the_server(
    uvicorn_calls: list[tuple[str, dict[str, Any]]],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    def broken() -> bool:
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(run_server, "ensure_database", broken)

    run_server.main([])

    assert len(uvicorn_calls) == 1
    assert "database unreachable" in capsys.readouterr().out


def test_initialise_database_reports_existing_tables(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'server.db'}", future=True)
    try:
        assert initialise_database(engine) is False
        assert "assessments" in inspect(engine).get_table_names()
        assert initialise_database(engine) is True
    finally:
        engine.dispose()
