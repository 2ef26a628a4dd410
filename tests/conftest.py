import socket
import subprocess
from pathlib import Path

import pytest


class FakeGit:
    """Stands in for the git CLI: clone creates a work tree, pull does nothing."""

    def __init__(self, fail_urls=()):
        self.commands: list[list[str]] = []
        self.fail_urls = set(fail_urls)

    def __call__(self, command, check=False, **kwargs):
        self.commands.append(list(command))
        if any(url in command for url in self.fail_urls):
            raise subprocess.CalledProcessError(128, command, output="fatal: repository not found")
        if command[:2] == ["git", "clone"]:
            target = Path(command[-1])
            (target / ".git").mkdir(parents=True)
        return subprocess.CompletedProcess(command, 0, "", None)

    @property
    def clones(self) -> list[list[str]]:
        return [cmd for cmd in self.commands if cmd[:2] == ["git", "clone"]]

    @property
    def pulls(self) -> list[list[str]]:
        return [cmd for cmd in self.commands if "pull" in cmd]


@pytest.fixture
def fake_git(monkeypatch):
    fake = FakeGit()
    monkeypatch.setattr("comfyui_installer.repository.exec_command", fake)
    monkeypatch.setattr(
        "comfyui_installer.repository.is_valid_git_path",
        lambda path: (Path(path) / ".git").is_dir(),
    )
    return fake


@pytest.fixture
def models_root(tmp_path):
    root = tmp_path / "models"
    for name in ("checkpoints", "loras", ".hidden"):
        (root / name).mkdir(parents=True)
    (root / "README.txt").write_text("not a folder")
    return root


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
