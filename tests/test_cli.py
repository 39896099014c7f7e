"""
Command-line interface.
"""

import logging

import pytest
import yaml
from click.testing import CliRunner

from tessera import __version__
from tessera.cli import cli


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv("TESSERA_SHARED_BY_DEFAULT", raising=False)
    monkeypatch.delenv("TESSERA_ALLOW_OVERRIDE", raising=False)
    return CliRunner()


@pytest.fixture
def services_file(tmp_path):
    path = tmp_path / "services.yaml"
    path.write_text(yaml.safe_dump({
        "service_manager": {
            "factories": {
                "transport": "sample_services:make_transport",
                "mailer": "sample_services:make_mailer",
            },
            "aliases": {"mail": "mailer"},
            "initializers": ["sample_services:mark_initialized"],
            "shared": {"transport": False},
        }
    }))
    return str(path)


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestCheck:

    def test_valid_config(self, runner, services_file):
        result = runner.invoke(cli, ["check", services_file])
        assert result.exit_code == 0, result.output
        assert "Service configuration is valid" in result.output
        assert "factories:          2" in result.output

    def test_dangling_alias_fails(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("aliases:\n  mail: mailer\n")
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 1
        assert "mail: alias target 'mailer' has no registered factory" in result.output

    def test_warnings_fail_only_in_strict_mode(self, runner, tmp_path):
        path = tmp_path / "warn.yaml"
        path.write_text(
            "factories:\n  svc: sample_services:make_buzzer\n"
            "shared:\n  ghost: false\n"
        )
        relaxed = runner.invoke(cli, ["check", str(path)])
        assert relaxed.exit_code == 0
        assert "warning  ghost" in relaxed.output

        strict = runner.invoke(cli, ["check", str(path), "--strict"])
        assert strict.exit_code == 1

    def test_malformed_config(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("factorys: {}\n")
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 1
        assert "unknown section 'factorys'" in result.output

    def test_env_file(self, runner, services_file, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("TESSERA_SHARED_BY_DEFAULT=maybe\n")
        result = runner.invoke(cli, ["check", services_file, "--env-file", str(env_file)])
        assert result.exit_code == 1
        assert "must be a boolean" in result.output


class TestShow:

    def test_lists_sections(self, runner, services_file):
        result = runner.invoke(cli, ["show", services_file])
        assert result.exit_code == 0, result.output
        assert "Factories" in result.output
        assert "make_mailer" in result.output
        assert "(not shared)" in result.output
        assert "mail" in result.output and "-> mailer" in result.output
        assert "Initializers" in result.output
        assert "Delegators" not in result.output


class TestResolve:

    def test_resolve_through_alias(self, runner, services_file):
        result = runner.invoke(cli, ["resolve", services_file, "--name", "mail"])
        assert result.exit_code == 0, result.output
        assert "mail -> mailer" in result.output
        assert "Mailer" in result.output

    def test_resolve_with_build(self, runner, services_file):
        result = runner.invoke(cli, ["resolve", services_file, "-n", "transport", "--build"])
        assert result.exit_code == 0, result.output
        assert "Transport" in result.output

    def test_unknown_service(self, runner, services_file):
        result = runner.invoke(cli, ["resolve", services_file, "-n", "ghost"])
        assert result.exit_code == 1
        assert "Unable to resolve service 'ghost'" in result.output

    def test_factory_error_exits_cleanly(self, runner, tmp_path):
        path = tmp_path / "boom.yaml"
        path.write_text("factories:\n  boom: sample_services:explode\n")
        result = runner.invoke(cli, ["resolve", str(path), "-n", "boom"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "RuntimeError: factory exploded" in result.output


class TestVerbose:

    def test_verbose_logs_registrations_and_resolutions(self, runner, services_file, caplog):
        caplog.set_level(logging.DEBUG, logger="tessera.diagnostics")
        result = runner.invoke(cli, ["-v", "resolve", services_file, "-n", "mail"])
        assert result.exit_code == 0, result.output
        assert "Registered factory make_mailer for name=mailer" in caplog.text
        assert "Resolved name=mailer" in caplog.text

    def test_quiet_by_default(self, runner, services_file, caplog):
        caplog.set_level(logging.DEBUG, logger="tessera.diagnostics")
        result = runner.invoke(cli, ["resolve", services_file, "-n", "mail"])
        assert result.exit_code == 0, result.output
        assert "Registered factory" not in caplog.text
