import pytest

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_required_columns_cover_timetable_tables():
    assert {"timetable_entries", "teacher_applications"} <= set(bootstrap.REQUIRED_COLUMNS)
    assert {"day", "time", "grade", "subject", "teacher_id"} <= bootstrap.REQUIRED_COLUMNS["timetable_entries"]
