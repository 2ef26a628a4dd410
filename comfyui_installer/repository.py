import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

import giturlparse

from .errors import SyncFailure
from .utils import exec_command, is_valid_git_path, logger


def derive_repo_name(url: str) -> str:
    repo = giturlparse.parse(url)
    if repo.valid:
        name = repo.name or ""
    elif urlparse(url).scheme == "file":
        # giturlparse does not handle local file:// remotes
        name = urlparse(url).path
    else:
        raise ValueError(f"Invalid git URL: {url}")
    # self-hosted hosts with a port yield "owner/repo" as the name
    name = name.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
    if not name or name in (".", ".."):
        raise ValueError(f"Cannot derive a directory name from: {url}")
    return name


@dataclass(frozen=True)
class SourceLocation:
    url: str
    ref: str | None = None
    name: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "name", derive_repo_name(self.url))

    def __str__(self):
        info = f"{self.name} ({self.url})"
        if self.ref:
            info += f" @ {self.ref}"
        return info


class SyncResult(Enum):
    CLONED = "cloned"
    UPDATED = "updated"


class RepositorySynchronizer:
    def _clone(self, location: SourceLocation, target_dir: Path) -> None:
        cmd = ["git", "clone"]
        if location.ref:
            cmd += ["-b", location.ref]
        cmd += [location.url, str(target_dir)]
        exec_command(cmd, check=True)

    def _update(self, location: SourceLocation, target_dir: Path) -> None:
        cmd = ["git", "-C", str(target_dir), "pull", "--ff-only"]
        if location.ref:
            cmd += ["origin", location.ref]
        exec_command(cmd, check=True)

    def sync(self, location: SourceLocation, target_dir: Path) -> SyncResult:
        if target_dir.is_file():
            raise SyncFailure(location.url, f"{target_dir} is a file")
        try:
            if not target_dir.exists():
                logger.info(f"📦 Cloning {location} -> {target_dir}")
                target_dir.parent.mkdir(parents=True, exist_ok=True)
                self._clone(location, target_dir)
                logger.info(f"✅ Cloned {location.name}")
                return SyncResult.CLONED
            if not is_valid_git_path(target_dir):
                raise SyncFailure(location.url, f"{target_dir} is not a git work tree")
            logger.info(f"🔄 Updating {location.name} in {target_dir}")
            self._update(location, target_dir)
            logger.info(f"✅ Updated {location.name}")
            return SyncResult.UPDATED
        except subprocess.CalledProcessError as e:
            raise SyncFailure(location.url, f"git exited with code {e.returncode}") from e
        except OSError as e:
            raise SyncFailure(location.url, str(e)) from e
