from enum import Enum
from pathlib import Path

from .environment import ExecutionMode


class RunMode(Enum):
    INSTALL = "install"
    UPDATE = "update"
    REPAIR = "repair"


class Step(Enum):
    SYNC_APP = "sync ComfyUI"
    ENSURE_ENV = "ensure virtual environment"
    INSTALL_PACKAGES = "install packages"
    FETCH_WHEEL = "install prebuilt wheel"
    RECONCILE_PLUGINS = "reconcile plugins"
    WRITE_HELPERS = "write helper scripts"
    EMIT_MANIFEST = "emit model paths"
    LIVENESS = "liveness check"

    def __str__(self):
        return self.value


def select_run_mode(app_path: Path, env_dir: Path) -> RunMode:
    """Classify the install target once, before any step runs."""
    if not app_path.exists():
        return RunMode.INSTALL
    if not env_dir.exists():
        return RunMode.REPAIR
    return RunMode.UPDATE


def build_plan(
    execution_mode: ExecutionMode,
    fetch_wheel: bool = False,
    emit_manifest: bool = False,
) -> list[Step]:
    plan = [
        Step.SYNC_APP,
        Step.ENSURE_ENV,
        Step.INSTALL_PACKAGES,
    ]
    if fetch_wheel:
        plan.append(Step.FETCH_WHEEL)
    plan += [Step.RECONCILE_PLUGINS, Step.WRITE_HELPERS]
    if emit_manifest:
        plan.append(Step.EMIT_MANIFEST)
    # unattended runs have no GPU to launch ComfyUI on
    if not execution_mode.unattended:
        plan.append(Step.LIVENESS)
    return plan
