import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import VENV_NAME
from .errors import InstallFailure
from .utils import exec_command, logger


@dataclass
class IsolatedEnvironment:
    root: Path

    @property
    def python(self) -> Path:
        if os.name == "nt":
            return self.root / "Scripts" / "python.exe"
        return self.root / "bin" / "python"

    def is_exists(self) -> bool:
        return self.root.is_dir()


class EnvironmentManager:
    def __init__(self, python_command: list[str]):
        self.python_command = python_command

    def ensure(self, target_dir: Path, name: str = VENV_NAME) -> IsolatedEnvironment:
        env = IsolatedEnvironment(target_dir / name)
        # an existing environment is reused as-is, even if a previous run was interrupted
        if env.is_exists():
            logger.info(f"ℹ️ Reusing virtual environment: {env.root}")
            return env
        logger.info(f"📦 Creating virtual environment: {env.root}")
        try:
            exec_command(self.python_command + ["-m", "venv", str(env.root)], check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise InstallFailure(f"Failed to create virtual environment {env.root}: {e}") from e
        logger.info(f"✅ Created virtual environment: {env.root}")
        return env
