"""
Unit Tests for the command line
"""
import argparse

import httpx
import pytest

from streetwise import main as main_module
from streetwise.api_client import StreetwiseAPIClient
from streetwise.main import build_config, create_parser, parse_args, run


class TestParser:

    def test_report_road_segment(self):
        args = create_parser().parse_args([
            "report", "-t", "lights", "-d", "Lights out",
            "--lat", "-1.29", "--lng", "36.82",
            "--end-lat", "-1.30", "--end-lng", "36.83",
        ])

        assert args.command == "report"
        assert args.type == "lights"
        assert args.end_lat == -1.30

    def test_report_type_restricted(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["report", "-t", "vandalism", "-d", "x", "--lat", "0", "--lng", "0"])

    def test_chat_options(self):
        args = create_parser().parse_args(["chat", "12", "--send", "On my way", "--follow"])

        assert args.report_id == "12"
        assert args.send == "On my way"
        assert args.follow is True

    def test_watch_once(self):
        args = create_parser().parse_args(["--verbose", "watch", "--once"])

        assert args.verbose is True
        assert args.once is True

    @pytest.mark.parametrize("extra", [["--end-lat", "-1.30"], ["--end-lng", "36.83"]])
    def test_road_end_needs_both_coordinates(self, extra, capsys):
        argv = ["report", "-t", "lights", "-d", "Lights out", "--lat", "-1.29", "--lng", "36.82"] + extra

        with pytest.raises(SystemExit):
            parse_args(argv)
        assert "--end-lat and --end-lng must be given together" in capsys.readouterr().err

    def test_location_report_without_end_point(self):
        args = parse_args(["report", "-t", "theft", "-d", "Bag taken", "--lat", "-1.29", "--lng", "36.82"])

        assert args.end_lat is None
        assert args.end_lng is None


class TestBuildConfig:

    def test_flags_override_config(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        args = argparse.Namespace(
            config=str(tmp_path / "none.json"),
            api_url="http://campus.test",
            cookie="abc",
            map_token="pk.cli",
            verbose=True,
        )

        config = build_config(args)

        assert config.api_base_url == "http://campus.test"
        assert config.session_cookie == "abc"
        assert config.map_access_token == "pk.cli"
        assert config.verbose is True


class TestWhoami:

    @pytest.mark.asyncio
    async def test_user_name_printed_verbatim(self, monkeypatch, tmp_path, backend, console):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            main_module,
            "StreetwiseAPIClient",
            lambda config: StreetwiseAPIClient(config, transport=httpx.MockTransport(backend)),
        )
        backend.user["name"] = "Ada [/admin]"
        args = parse_args(["--api-url", "http://test", "--cookie", "abc", "whoami"])
        args.config = str(tmp_path / "none.json")

        assert await run(args, console) == 0
        assert "Signed in as Ada [/admin] (student)" in console.file.getvalue()
