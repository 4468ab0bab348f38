"""CLI integration tests: compile, explain, params, capabilities, config, version."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from sbprofile import __version__
from sbprofile.cli.main import cli
from sbprofile.core.config import load_config
from sbprofile.core.constants import ExitCode
from sbprofile.core.policy.model import Tier

_FIXTURES = Path(__file__).parent.parent / "policy" / "fixtures"

_PARAMS_YAML = """\
parameters:
  MAC_OS_VERSION: 1013
  HOME_PATH: /Users/a
  APP_PATH: /Applications/Firefox.app/Contents/MacOS
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    logger = logging.getLogger("sbprofile")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text('[logging]\nlevel = "ERROR"\n', encoding="utf-8")
    return path


@pytest.fixture
def params_file(tmp_path: Path) -> Path:
    path = tmp_path / "params.yaml"
    path.write_text(_PARAMS_YAML, encoding="utf-8")
    return path


def _invoke(config_file: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args])


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------


class TestCompile:
    def test_stdout(self, config_file, params_file):
        result = _invoke(config_file, "compile", str(params_file))
        assert result.exit_code == 0, result.output
        assert result.output.startswith("(version 1)\n(deny default (with no-log))\n")

    def test_default_tier_from_config(self, config_file, params_file):
        result = _invoke(config_file, "compile", str(params_file))
        assert "\n(allow file-read*)\n" not in result.output

    def test_tier_option(self, config_file, params_file):
        result = _invoke(config_file, "compile", str(params_file), "--tier", "1")
        assert result.exit_code == 0
        assert result.output.endswith("\n(allow file-read*)\n")

    def test_role_option(self, config_file, params_file):
        result = _invoke(config_file, "compile", str(params_file), "--role", "file")
        assert result.exit_code == 0
        assert result.output.endswith('(global-name "com.apple.iconservices"))\n')

    def test_tier_and_roles_from_file(self, config_file):
        result = _invoke(config_file, "compile", str(_FIXTURES / "content_tier2.yaml"))
        assert result.exit_code == 0, result.output
        assert '(subpath "/Users/a/profile/chrome")' in result.output
        assert "(require-not (subpath \"/Users/a/profile\"))" in result.output

    def test_output_file(self, config_file, params_file, tmp_path):
        out = tmp_path / "content.sb"
        result = _invoke(config_file, "compile", str(params_file), "-o", str(out))
        assert result.exit_code == 0, result.output
        assert out.read_text(encoding="utf-8").startswith("(version 1)\n")
        assert "Wrote" in result.output

    def test_output_to_missing_directory(self, config_file, params_file, tmp_path):
        out = tmp_path / "absent" / "content.sb"
        result = _invoke(config_file, "compile", str(params_file), "-o", str(out))
        assert result.exit_code == ExitCode.ERROR
        assert "Cannot write output" in result.output
        assert not isinstance(result.exception, OSError)

    def test_same_output_twice(self, config_file, params_file):
        first = _invoke(config_file, "compile", str(params_file), "--tier", "2")
        second = _invoke(config_file, "compile", str(params_file), "--tier", "2")
        assert first.output == second.output

    def test_unknown_role(self, config_file, params_file):
        result = _invoke(config_file, "compile", str(params_file), "--role", "nonexistent")
        assert result.exit_code == ExitCode.ASSEMBLY_ERROR
        assert "Unknown process role" in result.output

    def test_unknown_parameter(self, config_file):
        result = _invoke(config_file, "compile", str(_FIXTURES / "unknown_parameter.yaml"))
        assert result.exit_code == ExitCode.PARAMETER_ERROR

    def test_invalid_file(self, config_file):
        result = _invoke(config_file, "compile", str(_FIXTURES / "bad_tier.yaml"))
        assert result.exit_code == ExitCode.PARAMETER_ERROR

    def test_malformed_integer_parameter(self, config_file, tmp_path):
        path = tmp_path / "bad_version.yaml"
        path.write_text(_PARAMS_YAML.replace("1013", '"--5"'), encoding="utf-8")
        result = _invoke(config_file, "compile", str(path))
        assert result.exit_code == ExitCode.PARAMETER_ERROR
        assert "expects an integer" in result.output

    def test_missing_required_parameter(self, config_file, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("parameters:\n  MAC_OS_VERSION: 1013\n", encoding="utf-8")
        result = _invoke(config_file, "compile", str(path))
        assert result.exit_code == ExitCode.PARAMETER_ERROR

    def test_missing_config(self, tmp_path, params_file):
        result = _invoke(tmp_path / "absent.toml", "compile", str(params_file))
        assert result.exit_code == ExitCode.CONFIG_ERROR


# ---------------------------------------------------------------------------
# explain / params / capabilities / version
# ---------------------------------------------------------------------------


class TestExplain:
    def test_explain(self, config_file, params_file):
        result = _invoke(config_file, "explain", str(params_file), "--tier", "2")
        assert result.exit_code == 0, result.output
        assert "[INCLUDE]" in result.output
        assert "tier-2-restricted-read" in result.output


class TestParams:
    def test_json(self, config_file):
        result = _invoke(config_file, "params", "--json")
        assert result.exit_code == 0
        rows = {row["name"]: row for row in json.loads(result.output)}
        assert rows["MAC_OS_VERSION"]["required"] is True
        assert rows["TESTING_READ_PATH4"]["kind"] == "optional_path"
        assert "TESTING_READ_PATH5" not in rows

    def test_table(self, config_file):
        result = _invoke(config_file, "params")
        assert result.exit_code == 0
        assert "HOME_PATH" in result.output


class TestCapabilities:
    def test_old_macos(self, config_file):
        result = _invoke(config_file, "capabilities", "--min-version", "10.9", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["capabilities"]["custom_shared_lock"] is True
        assert data["platform"].startswith("macos 10.9")

    def test_modern_macos(self, config_file):
        result = _invoke(config_file, "capabilities", "--min-version", "12.0", "--json")
        assert json.loads(result.output)["capabilities"]["custom_shared_lock"] is True

    def test_windows(self, config_file):
        result = _invoke(config_file, "capabilities", "--os", "windows", "--json")
        data = json.loads(result.output)
        assert data["capabilities"]["embedder_provides_tls"] is True
        assert data["capabilities"]["custom_shared_lock"] is False

    def test_invalid_version(self, config_file):
        result = _invoke(config_file, "capabilities", "--min-version", "ten")
        assert result.exit_code == ExitCode.ERROR

    def test_text(self, config_file):
        result = _invoke(config_file, "capabilities")
        assert result.exit_code == 0
        assert "single_threaded_invocations" in result.output


class TestConfigCommands:
    def test_init_writes_effective_config(self, config_file, tmp_path):
        target = tmp_path / "out" / "config.toml"
        result = _invoke(config_file, "config", "init", str(target))
        assert result.exit_code == 0, result.output
        written = load_config(target)
        assert written.logging.level == "ERROR"
        assert written.compile.default_tier is Tier.LEVEL_3

    def test_init_refuses_to_overwrite(self, config_file):
        before = config_file.read_text(encoding="utf-8")
        result = _invoke(config_file, "config", "init", str(config_file))
        assert result.exit_code == ExitCode.ERROR
        assert config_file.read_text(encoding="utf-8") == before

    def test_init_force(self, config_file):
        result = _invoke(config_file, "config", "init", str(config_file), "--force")
        assert result.exit_code == 0, result.output
        assert "[platform]" in config_file.read_text(encoding="utf-8")

    def test_show_json(self, config_file):
        result = _invoke(config_file, "config", "show", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["logging"]["level"] == "ERROR"
        assert data["platform"]["family"] == "macos"

class TestVersion:
    def test_json(self, config_file):
        result = _invoke(config_file, "version", "--json")
        data = json.loads(result.output)
        assert data["sbprofile"] == __version__
        assert data["libraries"] == ["content"]

    def test_flag(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
