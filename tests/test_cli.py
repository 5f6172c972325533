"""Tests for the terminal commands, with console input scripted."""

import io
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from sovern import cli
from sovern.models import BeliefDomain


@pytest.fixture
def console(monkeypatch):
    console = Console(file=io.StringIO(), width=200)
    monkeypatch.setattr(cli, "console", console)
    return console


def _output(console) -> str:
    return console.file.getvalue()


def _oscillating(store):
    node = store.create_core("Contested", BeliefDomain.META, "r", 5)
    for i, op in enumerate([store.strengthen, store.weaken, store.strengthen, store.weaken]):
        op(node.id, f"swing {i}")
    return node


class TestRunCli:
    @pytest.mark.asyncio
    async def test_export_to_bad_path_reports_and_keeps_running(self, console, monkeypatch, tmp_path):
        inputs = iter([f"\\export {tmp_path / 'missing' / 'beliefs.json'}", "\\quit"])
        monkeypatch.setattr(console, "input", lambda *a, **kw: next(inputs))
        monkeypatch.setattr(cli.db, "is_configured", lambda: False)
        close_pool = AsyncMock()
        monkeypatch.setattr(cli.db, "close_pool", close_pool)

        await cli.run_cli()

        close_pool.assert_awaited_once()
        assert "Goodbye" in _output(console)
        assert not (tmp_path / "missing").exists()

    @pytest.mark.asyncio
    async def test_export_writes_json(self, console, monkeypatch, tmp_path):
        target = tmp_path / "beliefs.json"
        inputs = iter([f"\\export {target}", "\\quit"])
        monkeypatch.setattr(console, "input", lambda *a, **kw: next(inputs))
        monkeypatch.setattr(cli.db, "is_configured", lambda: False)
        monkeypatch.setattr(cli.db, "close_pool", AsyncMock())

        await cli.run_cli()

        assert "Wisdom and Self-Knowledge" in target.read_text()


class TestConsolidateCommand:
    def test_lists_oscillating_beliefs(self, store, console):
        _oscillating(store)
        cli.show_consolidation(store)
        assert "Contested" in _output(console)
        assert "swings between ~5 and ~6" in _output(console)

    def test_locks_chosen_weight(self, store, console):
        node = _oscillating(store)

        cli.consolidate_belief(store, ["0", "7", "settled", "on", "it"])

        updated = store.get(node.id)
        assert updated.weight == 7
        assert updated.latest_revision.reason == "Consolidated from oscillation: settled on it"
        assert "Locked Contested at 7/10" in _output(console)

    @pytest.mark.parametrize("args", [["0"], ["x", "7", "why"], ["0", "11", "why"], ["3", "7", "why"]])
    def test_bad_arguments_change_nothing(self, store, console, args):
        node = _oscillating(store)
        cli.consolidate_belief(store, args)
        assert store.get(node.id).revision_count == 4
