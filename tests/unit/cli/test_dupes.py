"""Unit tests for the dupes command."""

import json
from pathlib import Path
from unittest.mock import patch

from fsguard.cli.main import app
from fsguard.filesystem.exceptions import FileNotReadableError
from typer.testing import CliRunner

runner = CliRunner()


class TestDupes:
    """Tests for fsguard dupes."""

    def test_json_output(self, config_file: Path, tree: Path) -> None:
        """Groups are printed as JSON with their paths."""
        result = runner.invoke(
            app,
            ["--quiet", "--config", str(config_file), "dupes", str(tree), "--format", "json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data) == 1
        assert data[0]["size_bytes"] == 5
        assert sorted(data[0]["paths"]) == sorted(
            [str((tree / "a.txt").resolve()), str((tree / "sub" / "b.txt").resolve())]
        )

    def test_table_output(self, config_file: Path, tree: Path) -> None:
        """The table output ends with a summary line."""
        result = runner.invoke(app, ["--config", str(config_file), "dupes", str(tree)])

        assert result.exit_code == 0
        assert "Found 2 files in 1 groups" in result.output

    def test_depth_zero(self, config_file: Path, tree: Path) -> None:
        """--depth 0 only looks at the top directory."""
        result = runner.invoke(app, ["--config", str(config_file), "dupes", str(tree), "--depth", "0"])

        assert result.exit_code == 0
        assert "No duplicate files found" in result.output

    def test_missing_directory(self, config_file: Path, tmp_path: Path) -> None:
        """A missing directory is rejected by argument validation."""
        result = runner.invoke(app, ["--config", str(config_file), "dupes", str(tmp_path / "nope")])

        assert result.exit_code != 0

    def test_filesystem_error(self, config_file: Path, tree: Path) -> None:
        """Filesystem errors are reported and exit with code 1."""
        with patch(
            "fsguard.cli.commands.dupes.FsDirectory.get_duplicate_files",
            side_effect=FileNotReadableError("cannot read", path=str(tree)),
        ):
            result = runner.invoke(app, ["--config", str(config_file), "dupes", str(tree)])

        assert result.exit_code == 1
        assert "cannot read" in result.output
