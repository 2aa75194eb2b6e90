"""Tests for the terminal front end."""

from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import pytest

from lp0chat import cli
from lp0chat.config.settings import Settings
from lp0chat.identity.store import SEED_STORAGE_KEY
from lp0chat.session.view import MessageRole


@pytest.fixture
def storage_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    s = Settings(STORAGE_PATH=str(tmp_path / "storage.json"))
    monkeypatch.setattr(cli, "settings", s)
    return s


class TestTerminalView:
    @pytest.mark.asyncio
    async def test_prints_messages(self) -> None:
        out = io.StringIO()
        view = cli.TerminalView(out)
        view.append_or_replace_message(MessageRole.USER, "hi")
        view.set_busy(True)
        view.set_busy(False)
        view.append_or_replace_message(MessageRole.BOT, "hello", replace=True)
        assert out.getvalue().splitlines() == ["you> hi", "   ...thinking", "bot> hello"]

    @pytest.mark.asyncio
    async def test_disable_input_ends_chat(self) -> None:
        view = cli.TerminalView(io.StringIO())
        view.disable_input()
        assert view.input_disabled
        assert view.ended.is_set()
        assert not view.finished.is_set()

    @pytest.mark.asyncio
    async def test_navigate_finishes(self) -> None:
        out = io.StringIO()
        view = cli.TerminalView(out)
        view.navigate("https://example.com/bye")
        assert view.finished.is_set()
        assert "https://example.com/bye" in out.getvalue()


class TestIdentityCommands:
    def test_whoami_is_stable(self, storage_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        cli._cmd_whoami()
        first = capsys.readouterr().out.strip()
        cli._cmd_whoami()
        second = capsys.readouterr().out.strip()
        assert first.startswith("U")
        assert first == second

    def test_reset_identity(self, storage_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        cli._cmd_whoami()
        before = capsys.readouterr().out.strip()
        cli._cmd_reset_identity()
        stored = json.loads(Path(storage_settings.STORAGE_PATH).read_text())
        assert SEED_STORAGE_KEY not in stored
        capsys.readouterr()
        cli._cmd_whoami()
        assert capsys.readouterr().out.strip() != before


class TestMain:
    def test_no_command_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["lp0chat"])
        with pytest.raises(SystemExit) as excinfo:
            cli.main()
        assert excinfo.value.code == 1

    def test_chat_requires_routing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["lp0chat", "chat", "--bot-id", "b1"])
        with pytest.raises(SystemExit) as excinfo:
            cli.main()
        assert excinfo.value.code == 2

    def test_whoami_dispatch(
        self,
        storage_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["lp0chat", "whoami"])
        cli.main()
        assert capsys.readouterr().out.strip().startswith("U")
