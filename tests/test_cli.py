"""Tests for the command-line entry point."""

import pytest

from grantgraph import cli
from grantgraph.errors import DatasetError


def test_invalid_ein(monkeypatch):
    monkeypatch.setattr(cli, "run", lambda *a, **kw: pytest.fail("run should not be called"))
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--ein", "12-345"])
    assert excinfo.value.code == 2


def test_fatal_error_exits_nonzero(monkeypatch):
    calls = []

    def failing_run(config, central_ein=None):
        calls.append(central_ein)
        raise DatasetError("Foundation with EIN 123456789 not found in dataset")

    monkeypatch.setattr(cli, "run", failing_run)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--ein", "12-3456789"])
    assert excinfo.value.code == 1
    assert calls == ["123456789"]
