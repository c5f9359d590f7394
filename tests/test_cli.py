"""Unit tests for the command-line entry point (morphy.cli)."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from morphy.cli import build_parser, main
from morphy.errors import CaseFailedError, InvalidDestinationError


@pytest.fixture(autouse=True)
def clean_env():
    with patch.dict(os.environ, {}, clear=True):
        yield


class TestBuildParser:
    @pytest.mark.unit
    def test_create_arguments(self):
        args = build_parser().parse_args(["create", "my-app", "./tpl", "--skip-install"])
        assert (args.command, args.destination, args.template, args.skip_install) == (
            "create",
            "my-app",
            "./tpl",
            True,
        )

    @pytest.mark.unit
    def test_create_template_optional(self):
        args = build_parser().parse_args(["create", "my-app"])
        assert args.template is None

    @pytest.mark.unit
    def test_test_arguments(self):
        args = build_parser().parse_args(["test", "./tpl", "2"])
        assert (args.template, args.case) == ("./tpl", 2)

    @pytest.mark.unit
    def test_test_defaults(self):
        args = build_parser().parse_args(["test"])
        assert (args.template, args.case, args.test_root) == (None, None, None)

    @pytest.mark.unit
    def test_non_numeric_case_rejected(self):
        with pytest.raises(SystemExit) as excinfo:
            build_parser().parse_args(["test", "./tpl", "two"])
        assert excinfo.value.code == 2


class TestMain:
    @pytest.mark.unit
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 1
        assert "create" in capsys.readouterr().out

    @pytest.mark.unit
    def test_create(self):
        with patch("morphy.cli.ProjectCreator") as creator_cls:
            creator_cls.return_value.create = AsyncMock(return_value=Path("my-app"))
            main(["create", "my-app", "./tpl"])

        config = creator_cls.call_args.args[0]
        assert config.skip_install is False
        creator_cls.return_value.create.assert_awaited_once_with("my-app", "./tpl")

    @pytest.mark.unit
    def test_create_skip_install(self):
        with patch("morphy.cli.ProjectCreator") as creator_cls:
            creator_cls.return_value.create = AsyncMock()
            main(["create", "my-app", "--skip-install"])
        assert creator_cls.call_args.args[0].skip_install is True

    @pytest.mark.unit
    def test_create_error_exits_1(self):
        with patch("morphy.cli.ProjectCreator") as creator_cls:
            creator_cls.return_value.create = AsyncMock(
                side_effect=InvalidDestinationError("Directory my-app already exists")
            )
            with pytest.raises(SystemExit) as excinfo:
                main(["create", "my-app"])
        assert excinfo.value.code == 1

    @pytest.mark.unit
    def test_unexpected_error_exits_1(self):
        with patch("morphy.cli.ProjectCreator") as creator_cls:
            creator_cls.return_value.create = AsyncMock(side_effect=RuntimeError("bug"))
            with pytest.raises(SystemExit) as excinfo:
                main(["create", "my-app"])
        assert excinfo.value.code == 1

    @pytest.mark.unit
    def test_interrupt_exits_130(self):
        with patch("morphy.cli.ProjectCreator") as creator_cls:
            creator_cls.return_value.create = AsyncMock(side_effect=KeyboardInterrupt)
            with pytest.raises(SystemExit) as excinfo:
                main(["create", "my-app"])
        assert excinfo.value.code == 130

    @pytest.mark.unit
    def test_test_command(self, tmp_path: Path):
        with patch("morphy.cli.TemplateTester") as tester_cls:
            tester_cls.return_value.run = AsyncMock(return_value=[2])
            main(["test", "./tpl", "2", "--test-root", str(tmp_path)])

        assert tester_cls.call_args.args[0].test_root == tmp_path
        tester_cls.return_value.run.assert_awaited_once_with("./tpl", 2)

    @pytest.mark.unit
    def test_case_below_one_rejected(self):
        with patch("morphy.cli.TemplateTester") as tester_cls:
            with pytest.raises(SystemExit) as excinfo:
                main(["test", "./tpl", "0"])
        assert excinfo.value.code == 1
        tester_cls.assert_not_called()

    @pytest.mark.unit
    def test_failed_case_exits_1(self):
        with patch("morphy.cli.TemplateTester") as tester_cls:
            tester_cls.return_value.run = AsyncMock(
                side_effect=CaseFailedError(1, "/tmp/test1", RuntimeError("boom"))
            )
            with pytest.raises(SystemExit) as excinfo:
                main(["test"])
        assert excinfo.value.code == 1

    @pytest.mark.unit
    def test_env_config_used(self):
        with patch.dict(os.environ, {"MORPHY_SKIP_INSTALL": "1"}):
            with patch("morphy.cli.ProjectCreator") as creator_cls:
                creator_cls.return_value.create = AsyncMock()
                main(["create", "my-app"])
        assert creator_cls.call_args.args[0].skip_install is True
