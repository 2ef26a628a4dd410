import os
import stat
from pathlib import Path

from .utils import logger
from .venv import IsolatedEnvironment

BAT_LAUNCHER = """@echo off
rem Auto-generated by comfyui-installer, regenerated on every run.
cd /d "{app_path}"
"{python}" main.py {args}
pause
"""

BAT_UPDATER = """@echo off
rem Auto-generated by comfyui-installer, regenerated on every run.
cd /d "{app_path}"
git pull --ff-only || goto :error
"{python}" -m pip install -r requirements.txt || goto :error
echo Update finished.
pause
exit /b 0
:error
echo Update failed.
pause
exit /b 1
"""

SH_LAUNCHER = """#!/usr/bin/env sh
# Auto-generated by comfyui-installer, regenerated on every run.
cd "{app_path}" || exit 1
exec "{python}" main.py {args}
"""

SH_UPDATER = """#!/usr/bin/env sh
# Auto-generated by comfyui-installer, regenerated on every run.
set -e
cd "{app_path}"
git pull --ff-only
"{python}" -m pip install -r requirements.txt
echo "Update finished."
"""


def launch_args(port: int, extra_args: str | None = None) -> list[str]:
    args = ["--port", str(port)]
    if extra_args:
        args.extend(extra_args.split())
    return args


def write_helper_scripts(
    app_path: Path,
    env: IsolatedEnvironment,
    port: int,
    extra_args: str | None = None,
    dest_dir: Path | None = None,
) -> list[Path]:
    dest_dir = dest_dir or app_path.parent
    if os.name == "nt":
        suffix, templates = ".bat", (BAT_LAUNCHER, BAT_UPDATER)
    else:
        suffix, templates = ".sh", (SH_LAUNCHER, SH_UPDATER)
    values = {
        "app_path": str(app_path.resolve()),
        "python": str(env.python.absolute()),
        "args": " ".join(launch_args(port, extra_args)),
    }

    written = []
    for stem, template in zip(("run_comfyui", "update_comfyui"), templates):
        path = dest_dir / f"{stem}{suffix}"
        content = template.format(**values)
        if suffix == ".bat":
            path.write_text(content, encoding="utf-8", newline="\r\n")
        else:
            path.write_text(content, encoding="utf-8")
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info(f"✅ Wrote helper script: {path}")
        written.append(path)
    return written
