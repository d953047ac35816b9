"""Tests for the command-line entry point."""

from unittest.mock import AsyncMock, patch

import pytest

from lendbot.main import main


class TestMain:
    def test_invalid_config_exits(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        path = tmp_path / "config.toml"
        path.write_text("log_level = [")

        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(path)])

        assert exc_info.value.code == 2

    def test_no_strategies_exits(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.chdir(tmp_path)

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2

    def test_runs_with_loaded_settings(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        path = tmp_path / "config.toml"
        path.write_text('[[exchanges]]\n[[exchanges.strategies]]\nsymbol = "USD"\n')

        with patch("lendbot.main.run", new_callable=AsyncMock) as run:
            main(["-c", str(path)])

        settings = run.await_args.args[0]
        assert [s.symbol for _, s in settings.pairs()] == ["USD"]
