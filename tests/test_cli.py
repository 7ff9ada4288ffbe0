"""Tests for the command line runner."""

import json
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from main import main


PROGRAMS = ROOT / "programs"


class TestMain:

    def test_inline_quiet(self, capsys):
        assert main(["--inline", "MOV ga 42; HALT", "--quiet"]) == 0
        assert capsys.readouterr().out.strip() == "ga=42"

    def test_program_file(self, capsys):
        assert main(["--program", str(PROGRAMS / "sum_1_to_10.azm")]) == 0
        out = capsys.readouterr().out
        assert "Cycles: 42" in out
        assert "'ga': 55" in out

    def test_missing_program(self, capsys):
        assert main(["--program", "does/not/exist.azm"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_error_exit_status(self, capsys):
        assert main(["--inline", "MOV ga 1; DIV ga 0; HALT"]) == 1
        assert "Error: Execute: Division by zero" in capsys.readouterr().out

    def test_max_cycles_exit_status(self, capsys):
        assert main(["--inline", ".loop; JMP .loop", "--max-cycles", "10"]) == 1
        assert "Max cycles (10) exceeded" in capsys.readouterr().out

    def test_autostep(self, capsys):
        assert main(["--program", str(PROGRAMS / "sum_1_to_10.azm"), "--autostep", "-q"]) == 0
        assert "ga=55" in capsys.readouterr().out

    def test_config_file_and_overrides(self, tmp_path, capsys):
        config = tmp_path / "machine.json"
        config.write_text(json.dumps({"word_width": 8, "gp_registers": 2}))
        assert main(["--inline", "MOV gb 300; HALT", "--config", str(config), "-q"]) == 0
        assert capsys.readouterr().out.strip() == "gb=44"

        assert main([
            "--inline", "MOV gb 300; HALT", "--config", str(config), "--word-width", "16", "-q"
        ]) == 0
        assert capsys.readouterr().out.strip() == "gb=300"

    def test_invalid_config(self, capsys):
        assert main(["--inline", "HALT", "--word-width", "12"]) == 2
        assert "word_width" in capsys.readouterr().out

    def test_trace_output(self, capsys):
        assert main(["--inline", "MOV ga 1; HALT", "--trace"]) == 0
        assert "RIZE-1 EXECUTION TRACE" in capsys.readouterr().out
