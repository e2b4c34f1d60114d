"""Unit tests for the config CLI commands."""

import json
from pathlib import Path

from fsguard.cli.main import app
from fsguard.core.config import load_settings
from typer.testing import CliRunner

runner = CliRunner()


class TestConfigInit:
    """Tests for fsguard config init."""

    def test_writes_defaults(self, config_file: Path) -> None:
        """init writes a settings file holding the defaults."""
        result = runner.invoke(app, ["--config", str(config_file), "config", "init"])

        assert result.exit_code == 0
        assert "Settings written" in result.output
        assert load_settings(config_file).file_mode == 0o640

    def test_refuses_to_overwrite(self, config_file: Path) -> None:
        """An existing file is kept unless --force is given."""
        config_file.parent.mkdir(parents=True)
        config_file.write_text('language = "de"\n')

        result = runner.invoke(app, ["--config", str(config_file), "config", "init"])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert load_settings(config_file).language == "de"

    def test_force_overwrites(self, config_file: Path) -> None:
        """--force replaces an existing file."""
        config_file.parent.mkdir(parents=True)
        config_file.write_text('language = "de"\n')

        result = runner.invoke(app, ["--config", str(config_file), "config", "init", "--force"])

        assert result.exit_code == 0
        assert load_settings(config_file).language == "en"


class TestConfigShow:
    """Tests for fsguard config show."""

    def test_json(self, config_file: Path) -> None:
        """--json prints the effective settings."""
        config_file.parent.mkdir(parents=True)
        config_file.write_text('language = "de"\ndirectory_mode = "700"\n')

        result = runner.invoke(
            app, ["--quiet", "--config", str(config_file), "config", "show", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["language"] == "de"
        assert data["directory_mode"] == 0o700

    def test_table_shows_octal_modes(self, config_file: Path) -> None:
        """The table renders modes in octal."""
        result = runner.invoke(app, ["--config", str(config_file), "config", "show"])

        assert result.exit_code == 0
        assert "0o640" in result.output
        assert "language" in result.output

    def test_invalid_file(self, config_file: Path) -> None:
        """An invalid settings file is reported."""
        config_file.parent.mkdir(parents=True)
        config_file.write_text("nope = 1\n")

        result = runner.invoke(app, ["--config", str(config_file), "config", "show"])

        assert result.exit_code == 1
        assert "Invalid settings content" in result.output
