import logging
import os
import subprocess
from functools import partial
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# git availability is probed explicitly, don't fail on import
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")
import git  # noqa: E402

from .constants import LOG_LEVEL  # noqa: E402

console = Console(log_path=False)
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, show_path=False)],
)
logger = logging.getLogger("comfyui_installer")

TRANSCRIPT_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_transcript(log_dir: Path, filename: str = "install.log") -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / filename
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(TRANSCRIPT_FORMAT))
    logger.addHandler(handler)
    return path


def is_valid_git_path(path: Path | str) -> bool:
    try:
        _ = git.Repo(path).git_dir
        return True
    except Exception:
        return False


def tail_file(path: Path, lines: int = 20) -> list[str]:
    if not path.is_file():
        return []
    content = path.read_text(encoding="utf-8", errors="replace").splitlines()
    return content[-lines:]


# use subprocess.Popen to get real-time output
# reference: https://github.com/python/cpython/blob/main/Lib/subprocess.py#L514
def exec_command(
    command: list[str], check=False, **kwargs
) -> subprocess.CompletedProcess:
    stdout_output = ""
    with subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
        **kwargs,
    ) as proc:
        try:
            for line in proc.stdout:
                logger.info(line.rstrip())
                stdout_output += line
        except Exception:
            proc.kill()
            raise
        retcode = proc.wait()
        if check and retcode:
            raise subprocess.CalledProcessError(
                retcode, command, output=stdout_output
            )
    return subprocess.CompletedProcess(proc.args, retcode, stdout_output, None)


def print_list_tree(items: list, level: int = logging.INFO) -> None:
    for item in items:
        logger.log(level, f"└─ {str(item)}")


class Progress:
    def __init__(self, total_steps: int, logger: logging.Logger = logger):
        self.logger = logger
        self.total_steps = total_steps
        self.current_step = 0
        self._original_methods = {}
        self.patch_levels = self._get_available_log_levels()

    def __enter__(self):
        # save original logger methods
        for level in self.patch_levels:
            self._original_methods[level] = getattr(self.logger, level)
        # patch logger methods
        for level in self.patch_levels:
            wrapped_method = partial(
                self._log_with_progress, original_log_func=self._original_methods[level]
            )
            setattr(self.logger, level, wrapped_method)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # restore original logger methods
        for level in self.patch_levels:
            if level in self._original_methods:
                setattr(self.logger, level, self._original_methods[level])

    def _get_available_log_levels(self):
        available_levels = []
        for level_name in logging.getLevelNamesMapping():
            method_name = level_name.lower()
            if callable(getattr(self.logger, method_name, None)):
                available_levels.append(method_name)
        return available_levels

    def _log_with_progress(self, msg: str, *args, original_log_func, **kwargs):
        progress_prefix = f"[{self.current_step}/{self.total_steps}]"
        original_log_func(f"{progress_prefix} {msg}", *args, **kwargs)

    def advance(self) -> None:
        if self.current_step < self.total_steps:
            self.current_step += 1
