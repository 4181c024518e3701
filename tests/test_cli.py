# Copyright (c) Syntropy Systems
"""Tests for treebatch CLI commands."""

import sys
from pathlib import Path

import pytest
from conftest import log_lines, make_unit, write_fake_tool
from typer.testing import CliRunner

from treebatch.cli.main import app

runner = CliRunner()

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs executable scripts")


def _logs(base: Path) -> list[Path]:
    return sorted(base.glob("iqtree_batch_*.log"))


class TestRunCommand:
    """Tests for treebatch run."""

    def test_run_basic(self, base_dir: Path, temp_dir: Path) -> None:
        """Test a run over one runnable and one finished unit."""
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("seqs/a1.fasta",))
        make_unit(base_dir, "GenusC", ("aln/c.fa",), done=True)

        result = runner.invoke(app, ["run", str(base_dir), "--tool", str(tool)])

        assert result.exit_code == 0
        assert "[GenusA] RUN: aln_dir=" in result.stdout
        assert "[GenusA] DONE:" in result.stdout
        assert "[GenusC] SKIP: existing tree found:" in result.stdout
        assert "1 ok, 0 failed, 1 skipped" in result.stdout
        assert (base_dir / "GenusA" / "iqtree_out" / "GenusA_concat_ML.treefile").exists()

    def test_run_defaults_to_cwd(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["run", "--tool", str(tool)])

        assert result.exit_code == 0
        assert len(_logs(base_dir)) == 1

    def test_failures_do_not_change_exit_code(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        unit = make_unit(base_dir, "GenusB", ("aln/b.fa",))
        _ = (unit / "aln" / "MODE").write_text("fail")

        result = runner.invoke(app, ["run", str(base_dir), "--tool", str(tool)])

        assert result.exit_code == 0
        assert "[GenusB] FAIL: exit_code=3 (see log)" in result.stdout
        assert "0 ok, 1 failed, 0 skipped" in result.stdout

    def test_subfolder_argument(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("other.fasta", "chosen/x.fa"))

        result = runner.invoke(app, ["run", str(base_dir), "chosen", "--tool", str(tool)])

        assert result.exit_code == 0
        assert "Align subfolder: chosen" in result.stdout
        assert f"aln_dir={(base_dir / 'GenusA' / 'chosen').resolve()}" in result.stdout

    def test_subfolder_outside_unit(self, base_dir: Path, temp_dir: Path) -> None:
        shared = temp_dir / "shared"
        shared.mkdir()
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["run", str(base_dir), str(shared)])

        assert result.exit_code == 1
        assert "Error:" in result.stdout
        assert _logs(base_dir) == []

    def test_tool_output_only_in_log(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["run", str(base_dir), "--tool", str(tool), "--threads", "4"])

        assert result.exit_code == 0
        assert "fake iqtree" not in result.stdout
        (log,) = _logs(base_dir)
        text = log.read_text()
        assert "fake iqtree -p" in text
        assert "-T 4" in text
        assert "warning on stderr" in text

    def test_quiet(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["run", str(base_dir), "--tool", str(tool), "--quiet"])

        assert result.exit_code == 0
        assert "[GenusA]" not in result.stdout
        (log,) = _logs(base_dir)
        assert "=== All done ===" in log_lines(log)

    def test_missing_base_path(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["run", str(temp_dir / "nope")])

        assert result.exit_code == 1
        assert "does not exist" in result.stdout
        assert list(temp_dir.iterdir()) == []

    def test_bad_config(self, base_dir: Path) -> None:
        _ = (base_dir / "treebatch.yaml").write_text("- not a mapping\n")

        result = runner.invoke(app, ["run", str(base_dir)])

        assert result.exit_code == 1
        assert "mapping" in result.stdout

    def test_bad_threads(self, base_dir: Path) -> None:
        result = runner.invoke(app, ["run", str(base_dir), "--threads", "lots"])

        assert result.exit_code == 2

    def test_no_sender_warning(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["run", str(base_dir), "--tool", str(tool)])

        assert result.exit_code == 0
        assert "WARN:" in result.stdout


class TestStatusCommand:
    """Tests for treebatch status."""

    def test_status_states(self, base_dir: Path) -> None:
        make_unit(base_dir, "A", ("seqs/a.fa",))
        make_unit(base_dir, "C", ("aln/c.fa",), done=True)
        make_unit(base_dir, "D", ("readme.md",))

        result = runner.invoke(app, ["status", str(base_dir)])

        assert result.exit_code == 0
        assert "pending" in result.stdout
        assert "done" in result.stdout
        assert "no input" in result.stdout
        assert "1 done, 1 pending, 1 without input" in result.stdout
        assert _logs(base_dir) == []

    def test_status_empty(self, base_dir: Path) -> None:
        result = runner.invoke(app, ["status", str(base_dir)])

        assert result.exit_code == 0
        assert "No units found" in result.stdout

    def test_status_subfolder_outside_unit(self, base_dir: Path, temp_dir: Path) -> None:
        """Test that an absolute subfolder is reported as an error, not a crash."""
        shared = temp_dir / "shared"
        shared.mkdir()
        _ = (shared / "s.fa").write_text(">s\nACGT\n")
        make_unit(base_dir, "GenusA", ("a.fa",))

        result = runner.invoke(app, ["status", str(base_dir), str(shared)])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Error:" in result.stdout

    def test_status_ignores_hidden_directories(self, base_dir: Path) -> None:
        make_unit(base_dir, ".snakemake", ("x.fa",))
        make_unit(base_dir, "A", ("seqs/a.fa",))

        result = runner.invoke(app, ["status", str(base_dir)])

        assert result.exit_code == 0
        assert ".snakemake" not in result.stdout
        assert "0 done, 1 pending, 0 without input" in result.stdout

    def test_status_missing_base(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["status", str(temp_dir / "nope")])

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestDoctorCommand:
    """Tests for treebatch doctor."""

    def test_doctor_missing_tool(self, base_dir: Path) -> None:
        _ = (base_dir / "treebatch.yaml").write_text("tool: definitely-not-installed-iqtree\n")

        result = runner.invoke(app, ["doctor", str(base_dir)])

        assert result.exit_code == 0
        assert "definitely-not-installed-iqtree not found on PATH" in result.stdout
        assert "issue(s)" in result.stdout

    def test_doctor_found_tool(self, base_dir: Path, temp_dir: Path) -> None:
        tool = write_fake_tool(temp_dir)
        _ = (base_dir / "treebatch.yaml").write_text(f"tool: {tool}\n")

        result = runner.invoke(app, ["doctor", str(base_dir)])

        assert result.exit_code == 0
        assert "No email_to configured" in result.stdout

    def test_doctor_bad_config(self, base_dir: Path) -> None:
        result = runner.invoke(app, ["doctor", str(base_dir), "--config", str(base_dir / "x.yaml")])

        assert result.exit_code == 1
        assert "not found" in result.stdout
