import os
import subprocess
import time
from enum import Enum
from pathlib import Path

import requests

from .utils import logger, tail_file


class ProbeResult(Enum):
    PASS = "pass"
    FAIL = "fail"


class ProbeState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RESPONDING = "responding"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"


class ManagedProcess:
    """Child process with stdout/stderr captured to files.

    The process is terminated and both capture files closed when the
    ``with`` block exits, whatever the reason.
    """

    def __init__(
        self,
        command: list[str],
        stdout_path: Path,
        stderr_path: Path,
        cwd: Path | None = None,
        kill_timeout: float = 10.0,
    ):
        self.command = command
        self.stdout_path = stdout_path
        self.stderr_path = stderr_path
        self.cwd = cwd
        self.kill_timeout = kill_timeout
        self.process: subprocess.Popen | None = None
        self._stdout = None
        self._stderr = None

    def __enter__(self):
        self.stdout_path.parent.mkdir(parents=True, exist_ok=True)
        self._stdout = open(self.stdout_path, "w", encoding="utf-8")
        self._stderr = open(self.stderr_path, "w", encoding="utf-8")
        kwargs = {}
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        try:
            self.process = subprocess.Popen(
                self.command,
                cwd=self.cwd,
                stdout=self._stdout,
                stderr=self._stderr,
                **kwargs,
            )
        except Exception:
            self._close_streams()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.terminate()
        finally:
            self._close_streams()

    def _close_streams(self):
        for stream in (self._stdout, self._stderr):
            if stream is not None and not stream.closed:
                stream.close()

    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def terminate(self) -> None:
        if not self.is_running():
            return
        logger.info(f"🛑 Stopping process {self.process.pid}")
        self.process.terminate()
        try:
            self.process.wait(timeout=self.kill_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"⚠️ Process {self.process.pid} did not stop, killing it")
            self.process.kill()
            self.process.wait()


class LivenessProber:
    def __init__(
        self,
        url: str,
        timeout: float,
        interval: float = 2.0,
        log_dir: Path = Path("logs"),
        request_timeout: float = 2.0,
        tail_lines: int = 20,
    ):
        self.url = url
        self.timeout = timeout
        self.interval = interval
        self.log_dir = log_dir
        self.request_timeout = request_timeout
        self.tail_lines = tail_lines
        self.state = ProbeState.NOT_STARTED
        self.process: subprocess.Popen | None = None

    @property
    def stdout_path(self) -> Path:
        return self.log_dir / "comfyui_stdout.log"

    @property
    def stderr_path(self) -> Path:
        return self.log_dir / "comfyui_stderr.log"

    def is_responding(self) -> bool:
        try:
            response = requests.get(self.url, timeout=self.request_timeout)
        except requests.RequestException:
            return False
        # any answer from the server counts, not only 2xx
        return 200 <= response.status_code < 500

    def _wait_until_responding(self, child: ManagedProcess) -> bool:
        deadline = time.monotonic() + self.timeout
        while True:
            if self.is_responding():
                return True
            if not child.is_running():
                logger.error(
                    f"❌ Process exited with code {child.process.returncode} before answering"
                )
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(self.interval, remaining))

    def _report_failure(self) -> None:
        for path in (self.stdout_path, self.stderr_path):
            lines = tail_file(path, self.tail_lines)
            if not lines:
                logger.warning(f"⚠️ {path.name}: no output captured")
                continue
            logger.warning(f"⚠️ Last {len(lines)} lines of {path.name}:")
            for line in lines:
                logger.warning(f"│ {line}")

    def probe(self, command: list[str], cwd: Path | None = None) -> ProbeResult:
        logger.info(f"🚀 Launching for liveness check: {' '.join(command)}")
        self.state = ProbeState.STARTING
        responded = False
        try:
            with ManagedProcess(
                command, self.stdout_path, self.stderr_path, cwd=cwd
            ) as child:
                self.process = child.process
                logger.info(f"⏳ Waiting up to {self.timeout:g}s for {self.url}")
                responded = self._wait_until_responding(child)
                if responded:
                    self.state = ProbeState.RESPONDING
                    logger.info(f"✅ {self.url} is responding")
                else:
                    self.state = ProbeState.TIMED_OUT
                    logger.error(
                        f"❌ {self.url} did not respond within {self.timeout:g}s"
                    )
        except OSError as e:
            logger.error(f"❌ Failed to launch {command[0]}: {str(e)}")
        finally:
            self.state = ProbeState.STOPPED
        if not responded:
            # capture files are complete once the process is gone
            self._report_failure()
            return ProbeResult.FAIL
        return ProbeResult.PASS
