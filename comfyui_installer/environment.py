import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum

import git

from .constants import get_bool_env
from .errors import PrerequisiteMissing
from .utils import exec_command, logger

VERSION_SNIPPET = "import sys; print('%d.%d' % sys.version_info[:2])"


class ExecutionMode(Enum):
    INTERACTIVE = "interactive"
    UNATTENDED = "unattended"

    @property
    def unattended(self) -> bool:
        return self is ExecutionMode.UNATTENDED


def detect_execution_mode(flag: str = "CI") -> ExecutionMode:
    if get_bool_env(flag, False):
        return ExecutionMode.UNATTENDED
    return ExecutionMode.INTERACTIVE


@dataclass
class ProbeResult:
    mode: ExecutionMode
    git_version: str
    python_command: list[str]


class EnvironmentProber:
    def __init__(self, mode: ExecutionMode, python_version: str):
        self.mode = mode
        self.python_version = python_version

    def _python_candidates(self) -> list[list[str]]:
        candidates = []
        if os.name == "nt":
            candidates.append(["py", f"-{self.python_version}"])
        candidates.append([f"python{self.python_version}"])
        candidates.append(["python3"])
        candidates.append(["python"])
        return candidates

    def _query_python_version(self, command: list[str]) -> str | None:
        if not shutil.which(command[0]):
            return None
        try:
            result = subprocess.run(
                command + ["-c", VERSION_SNIPPET],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError):
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def find_python(self) -> list[str] | None:
        for command in self._python_candidates():
            version = self._query_python_version(command)
            if version == self.python_version:
                logger.info(f"✅ Found Python {version}: {' '.join(command)}")
                return command
            if version:
                logger.debug(f"🛠️ Skipping {' '.join(command)}: Python {version}")
        return None

    def acquire_python(self) -> bool:
        if not shutil.which("winget"):
            logger.warning("⚠️ winget not available, cannot install Python")
            return False
        logger.info(f"📦 Installing Python {self.python_version} via winget...")
        res = exec_command(
            [
                "winget",
                "install",
                "--id",
                f"Python.Python.{self.python_version}",
                "-e",
                "--silent",
                "--accept-package-agreements",
                "--accept-source-agreements",
            ]
        )
        if res.returncode != 0:
            logger.warning(f"⚠️ winget exited with code {res.returncode}")
            return False
        return True

    def check_git(self) -> str:
        if not shutil.which("git"):
            raise PrerequisiteMissing("git", "install Git and make sure it is on PATH")
        try:
            version = git.Git().version()
        except (git.GitCommandError, git.GitCommandNotFound) as e:
            raise PrerequisiteMissing("git", str(e)) from e
        logger.info(f"✅ Found {version}")
        return version

    def check_python(self) -> list[str]:
        command = self.find_python()
        if command:
            return command
        if self.mode.unattended:
            raise PrerequisiteMissing(
                f"python {self.python_version}",
                "unattended runs expect a pre-provisioned interpreter",
            )
        logger.warning(f"⚠️ Python {self.python_version} not found, trying to install it")
        self.acquire_python()
        command = self.find_python()
        if not command:
            raise PrerequisiteMissing(
                f"python {self.python_version}",
                f"install Python {self.python_version} manually and re-run",
            )
        return command

    def check_aria2c(self) -> None:
        if not shutil.which("aria2c"):
            raise PrerequisiteMissing("aria2c", "needed to fetch the prebuilt wheel")
        logger.info("✅ Found aria2c")

    def probe(self, require_aria2c: bool = False) -> ProbeResult:
        logger.info(f"🔍 Probing environment ({self.mode.value} mode)")
        git_version = self.check_git()
        python_command = self.check_python()
        if require_aria2c:
            self.check_aria2c()
        return ProbeResult(self.mode, git_version, python_command)
