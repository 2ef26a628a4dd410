"""Tests for utils.py - command execution, transcript and progress logging."""

import logging
import subprocess
import sys

import pytest

from comfyui_installer.utils import (
    Progress,
    exec_command,
    logger,
    setup_transcript,
    tail_file,
)


class TestExecCommand:
    def test_captures_output(self):
        res = exec_command([sys.executable, "-c", "print('hello'); print('world')"])
        assert res.returncode == 0
        assert res.stdout.splitlines() == ["hello", "world"]

    def test_merges_stderr(self):
        res = exec_command([sys.executable, "-c", "import sys; sys.stderr.write('oops\\n')"])
        assert "oops" in res.stdout

    def test_check_raises_on_failure(self):
        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            exec_command([sys.executable, "-c", "import sys; sys.exit(3)"], check=True)
        assert excinfo.value.returncode == 3

    def test_no_check_returns_code(self):
        res = exec_command([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert res.returncode == 3


class TestTranscript:
    def test_appends_across_runs(self, tmp_path):
        for message in ("first run", "second run"):
            path = setup_transcript(tmp_path)
            logger.info(message)
            handler = logger.handlers[-1]
            logger.removeHandler(handler)
            handler.close()

        content = path.read_text(encoding="utf-8")
        assert "first run" in content and "second run" in content
        assert content.index("first run") < content.index("second run")


class TestTailFile:
    def test_last_lines(self, tmp_path):
        path = tmp_path / "out.log"
        path.write_text("\n".join(str(i) for i in range(50)), encoding="utf-8")
        assert tail_file(path, 3) == ["47", "48", "49"]

    def test_missing_file(self, tmp_path):
        assert tail_file(tmp_path / "nope.log") == []


class TestProgress:
    def test_prefixes_messages(self, caplog):
        caplog.set_level(logging.INFO, logger="comfyui_installer")
        with Progress(total_steps=2) as p:
            p.advance()
            logger.info("cloning")
        logger.info("done")

        assert "[1/2] cloning" in caplog.messages
        assert "done" in caplog.messages

    def test_nested_progress(self, caplog):
        caplog.set_level(logging.INFO, logger="comfyui_installer")
        with Progress(total_steps=8) as outer:
            outer.advance()
            with Progress(total_steps=3) as inner:
                inner.advance()
                logger.info("plugin")
            logger.info("step")

        assert "[1/8] [1/3] plugin" in caplog.messages
        assert "[1/8] step" in caplog.messages

    def test_advance_stops_at_total(self):
        p = Progress(total_steps=1)
        p.advance()
        p.advance()
        assert p.current_step == 1
