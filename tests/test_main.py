#!/usr/bin/env python3
"""Tests for the command-line entry point.

Tests cover:
    - Argument parsing and mode exclusivity
    - Local validation before any remote call
    - Exit status for fatal errors
"""
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
import main
from src.autopilot.api.exceptions import ConfigurationError, FetchError


@pytest.fixture
def directive_file(tmp_path):
    path = tmp_path / "names.csv"
    path.write_text("SerialNumber,DesiredName\nSN1,PC-1\n", encoding="utf-8")
    return path


def parse(*argv):
    return main.parse_args(list(argv))


def mock_graph_client():
    client_cls = MagicMock()
    client_cls.return_value.__aenter__ = AsyncMock(return_value=MagicMock())
    client_cls.return_value.__aexit__ = AsyncMock(return_value=None)
    return client_cls


class TestParser:
    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse("--export", "--apply", "names.csv")

    def test_mode_required(self):
        with pytest.raises(SystemExit):
            parse("--force")

    def test_apply_flags(self):
        args = parse("--apply", "names.csv", "--force", "--simulate", "--output", "out.xlsx")
        assert args.apply == "names.csv"
        assert args.force and args.simulate
        assert args.output == "out.xlsx"
        assert not args.export

    @pytest.mark.parametrize("flag", ["--force", "--simulate", "--confirm"])
    def test_apply_flags_rejected_with_export(self, flag, capsys):
        with pytest.raises(SystemExit) as exc:
            parse("--export", flag)

        assert exc.value.code == 2
        assert f"{flag} can only be used with --apply" in capsys.readouterr().err

    def test_json_rejected_with_apply(self):
        with pytest.raises(SystemExit):
            parse("--apply", "names.csv", "--json", "d.json")

    def test_export_with_json(self):
        args = parse("--export", "--json", "d.json")
        assert args.export and args.json == "d.json"


class TestHelpers:
    def test_load_directives(self, directive_file):
        assert main.load_directives(str(directive_file)) == {"SN1": "PC-1"}

    def test_load_directives_missing_file(self, tmp_path):
        with pytest.raises(main.InputValidationError):
            main.load_directives(str(tmp_path / "nope.csv"))

    def test_update_interval(self, monkeypatch):
        monkeypatch.delenv("AUTOPILOT_UPDATE_INTERVAL", raising=False)
        assert main.update_interval() is None

        monkeypatch.setenv("AUTOPILOT_UPDATE_INTERVAL", "1.5")
        assert main.update_interval() == 1.5

        monkeypatch.setenv("AUTOPILOT_UPDATE_INTERVAL", "fast")
        with pytest.raises(ConfigurationError):
            main.update_interval()

    def test_prompt_confirm(self):
        with patch("builtins.input", return_value=" Y "):
            assert main.prompt_confirm("SN1", "d1", "PC-1")
        with patch("builtins.input", return_value=""):
            assert not main.prompt_confirm("SN1", "d1", "PC-1")


class TestRun:
    @pytest.mark.asyncio
    async def test_invalid_input_exits_before_remote_calls(self, tmp_path):
        bad = tmp_path / "bad.csv"
        bad.write_text("Asset,Name\nA1,PC-1\n", encoding="utf-8")

        with patch("main.TokenManager") as token_cls, patch("main.GraphClient") as client_cls:
            code = await main.run(parse("--apply", str(bad), "--output", str(tmp_path)))

        assert code == 1
        token_cls.assert_not_called()
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_configuration_exits(self, directive_file, tmp_path):
        with patch("main.TokenManager", side_effect=ConfigurationError("Missing AUTOPILOT_CLIENT_ID")), \
                patch("main.GraphClient") as client_cls:
            code = await main.run(parse("--apply", str(directive_file), "--output", str(tmp_path)))

        assert code == 1
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_output_path_exits(self, directive_file, tmp_path):
        with patch("main.TokenManager"), patch("main.GraphClient") as client_cls:
            code = await main.run(
                parse("--apply", str(directive_file), "--output", str(tmp_path / "r.txt"))
            )

        assert code == 1
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_runs(self, directive_file, tmp_path):
        with patch("main.TokenManager"), \
                patch("main.GraphClient", mock_graph_client()), \
                patch("main.run_apply", new_callable=AsyncMock) as run_apply:
            code = await main.run(parse("--apply", str(directive_file), "--output", str(tmp_path)))

        assert code == 0
        assert run_apply.await_args.args[2] == {"SN1": "PC-1"}

    @pytest.mark.asyncio
    async def test_export_runs(self, tmp_path):
        with patch("main.TokenManager"), \
                patch("main.GraphClient", mock_graph_client()), \
                patch("main.run_export", new_callable=AsyncMock) as run_export:
            code = await main.run(parse("--export", "--output", str(tmp_path), "--json", "d.json"))

        assert code == 0
        assert run_export.await_args.kwargs["json_path"] == "d.json"

    @pytest.mark.asyncio
    async def test_fetch_error_exits(self, directive_file, tmp_path):
        with patch("main.TokenManager"), \
                patch("main.GraphClient", mock_graph_client()), \
                patch("main.run_apply", AsyncMock(side_effect=FetchError("Graph unavailable"))):
            code = await main.run(parse("--apply", str(directive_file), "--output", str(tmp_path)))

        assert code == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
