"""Tests for the command-line front-end."""

import http.client as http_client
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from apim_app_migrator.cli import ERROR_LOG_FILE, LOG_FILE, build_parser, main
from apim_app_migrator.errors import RegistrationError
from apim_app_migrator.models import RunSummary

CONFIG = """
username = "admin"
password = "admin"
scopes = "apim:admin"

[apim]
hostname = "https://apim.test"

[dynamic_client_registration]
callback_url = "www.example.org"
client_name = "rest_api_admin"
owner = "admin"
grant_types = "password refresh_token"
"""


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def restore_wire_logging():
    debuglevel = http_client.HTTPConnection.debuglevel
    yield
    http_client.HTTPConnection.debuglevel = debuglevel


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "environment.toml"
    path.write_text(CONFIG)
    return path


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:

    def test_flags(self):
        args = build_parser().parse_args(["--export-apps", "--import-apps"])
        assert args.export_apps is True
        assert args.import_apps is True
        assert args.config == Path("environment.toml")

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.export_apps is False
        assert args.import_apps is False


class TestMain:

    def test_no_flags_is_a_warning_noop(self, config_file, tmp_path, caplog):
        with patch("apim_app_migrator.core.coordinator.ApimClient") as client_cls:
            code = run_main(["--config", str(config_file), "--log-dir", str(tmp_path / "logs")])

        assert code == 0
        client_cls.assert_not_called()
        assert "no flags specified" in (tmp_path / "logs" / LOG_FILE).read_text()

    def test_missing_config(self, tmp_path):
        assert run_main(["--export-apps", "--config", str(tmp_path / "missing.toml")]) == 1

    def test_fatal_credentials(self, config_file, tmp_path):
        log_dir = tmp_path / "logs"
        with patch("apim_app_migrator.cli.Coordinator") as coordinator_cls:
            coordinator_cls.return_value.run.side_effect = RegistrationError("Dynamic client registration failed")
            code = run_main(["--export-apps", "--config", str(config_file), "--log-dir", str(log_dir)])

        assert code == 1
        assert "registration failed" in (log_dir / ERROR_LOG_FILE).read_text()

    def test_partial_failure_exit_code(self, config_file, tmp_path):
        summary = RunSummary()
        summary.record("export", "bar:foo", error=RuntimeError("boom"))
        with patch("apim_app_migrator.cli.Coordinator") as coordinator_cls:
            coordinator_cls.return_value.run.return_value = summary
            code = run_main(["--export-apps", "--config", str(config_file), "--log-dir", str(tmp_path)])

        assert code == 2
        coordinator_cls.return_value.run.assert_called_once_with(export_apps=True, import_apps=False)

    def test_success(self, config_file, tmp_path):
        with patch("apim_app_migrator.cli.Coordinator") as coordinator_cls:
            coordinator_cls.return_value.run.return_value = RunSummary()
            code = run_main(["--import-apps", "--config", str(config_file), "--log-dir", str(tmp_path)])

        assert code == 0
        coordinator_cls.return_value.run.assert_called_once_with(export_apps=False, import_apps=True)

    def test_config_debug_does_not_enable_wire_logging(self, config_file, tmp_path):
        config_file.write_text(CONFIG + "\n[log]\ndebug = true\n")
        http_client.HTTPConnection.debuglevel = 0
        with patch("apim_app_migrator.cli.Coordinator") as coordinator_cls:
            coordinator_cls.return_value.run.return_value = RunSummary()
            code = run_main(["--export-apps", "--config", str(config_file), "--log-dir", str(tmp_path)])

        assert code == 0
        assert http_client.HTTPConnection.debuglevel == 0

    def test_debug_flag_enables_wire_logging(self, config_file, tmp_path):
        http_client.HTTPConnection.debuglevel = 0
        with patch("apim_app_migrator.cli.Coordinator") as coordinator_cls:
            coordinator_cls.return_value.run.return_value = RunSummary()
            run_main(["--export-apps", "--debug", "--config", str(config_file), "--log-dir", str(tmp_path)])

        assert http_client.HTTPConnection.debuglevel == 1
