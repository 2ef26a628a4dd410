import logging
from dataclasses import dataclass
from pathlib import Path

from .config import ConfigManager
from .constants import (
    COMFYUI_EXTRA_ARGS,
    COMFYUI_PATH,
    COMFYUI_PORT,
    COMFYUI_REF,
    COMFYUI_REPO_URL,
    CONFIG_DIR,
    INSTALL_PREBUILT_WHEEL,
    LOG_DIR,
    MANIFEST_NAME,
    MODELS_DIR,
    PLUGIN_LIST_PATH,
    PLUGINS_FAIL_FAST,
    PREBUILT_WHEEL_URL,
    PROBE_INTERVAL,
    PROBE_TIMEOUT,
    PYTHON_VERSION,
    TORCH_INDEX_URL,
    TORCH_PACKAGES,
    VENV_NAME,
)
from .download import Downloader, fetch_wheel
from .environment import EnvironmentProber, ExecutionMode, detect_execution_mode
from .errors import ConfigInputInvalid, InstallerError, LivenessTimeout, SyncFailure
from .launcher import launch_args, write_helper_scripts
from .liveness import LivenessProber, ProbeResult
from .manifest import emit
from .packages import PackageDirective, PackageInstaller, base_directives
from .plan import RunMode, Step, build_plan, select_run_mode
from .plugins import (
    PluginSetReconciler,
    ReconcileReport,
    build_locations,
    load_plugin_list,
)
from .prompts import ask_yes_no, pick_directory
from .repository import RepositorySynchronizer, SourceLocation
from .utils import Progress, logger, print_list_tree, setup_transcript
from .venv import EnvironmentManager


@dataclass
class InstallOptions:
    app_path: Path
    repo_url: str
    python_version: str
    plugin_list_path: Path
    config_dir: Path
    log_dir: Path
    repo_ref: str | None = None
    torch_index_url: str = TORCH_INDEX_URL
    wheel_url: str = PREBUILT_WHEEL_URL
    fetch_wheel: bool = False
    models_dir: Path | None = None
    port: int = 8188
    extra_args: str | None = None
    probe_timeout: float = 300.0
    probe_interval: float = 2.0
    plugins_fail_fast: bool = False

    @property
    def env_dir(self) -> Path:
        return self.app_path / VENV_NAME

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}/"

    @classmethod
    def from_env(cls) -> "InstallOptions":
        return cls(
            app_path=COMFYUI_PATH,
            repo_url=COMFYUI_REPO_URL,
            repo_ref=COMFYUI_REF,
            python_version=PYTHON_VERSION,
            plugin_list_path=PLUGIN_LIST_PATH,
            config_dir=CONFIG_DIR,
            log_dir=LOG_DIR,
            torch_index_url=TORCH_INDEX_URL,
            wheel_url=PREBUILT_WHEEL_URL,
            fetch_wheel=INSTALL_PREBUILT_WHEEL,
            models_dir=Path(MODELS_DIR) if MODELS_DIR else None,
            port=COMFYUI_PORT,
            extra_args=COMFYUI_EXTRA_ARGS,
            probe_timeout=PROBE_TIMEOUT,
            probe_interval=PROBE_INTERVAL,
            plugins_fail_fast=PLUGINS_FAIL_FAST,
        )


class ComfyUIInstaller:
    def __init__(
        self,
        options: InstallOptions,
        mode: ExecutionMode,
        synchronizer: RepositorySynchronizer | None = None,
        prober: EnvironmentProber | None = None,
    ):
        self.options = options
        self.mode = mode
        self.synchronizer = synchronizer or RepositorySynchronizer()
        self.prober = prober or EnvironmentProber(mode, options.python_version)
        self.config_manager = None
        self.run_mode = None
        self.python_command = None
        self.env = None
        self.installer = None
        self.plugin_report = None
        self.completed: list[Step] = []

    def _resolve_choices(self) -> None:
        # interactive runs may override the env defaults
        opts = self.options
        if not self.mode.unattended:
            opts.fetch_wheel = ask_yes_no(
                "Install the prebuilt wheel?", self.mode, default=opts.fetch_wheel
            )
            if opts.models_dir is None and ask_yes_no(
                "Point ComfyUI at an external models folder?",
                self.mode,
                default=self.run_mode is RunMode.INSTALL,
            ):
                opts.models_dir = pick_directory("Select your models folder", self.mode)
                if opts.models_dir is None:
                    logger.info("ℹ️ No folder selected, skipping model paths")

    def _extra_directives(self) -> list[PackageDirective]:
        directives = []
        for config in self.config_manager.get_list("packages"):
            try:
                directives.append(PackageDirective.from_config(config))
            except (TypeError, ValueError) as e:
                raise ConfigInputInvalid(
                    f"Invalid package config {config!r}: {str(e)}"
                ) from e
        return directives

    def sync_app(self) -> None:
        try:
            location = SourceLocation(self.options.repo_url, self.options.repo_ref)
        except ValueError as e:
            raise SyncFailure(self.options.repo_url, str(e)) from e
        self.synchronizer.sync(location, self.options.app_path)

    def ensure_env(self) -> None:
        self.env = EnvironmentManager(self.python_command).ensure(self.options.app_path)
        self.installer = PackageInstaller(self.env)

    def install_packages(self) -> None:
        directives = base_directives(
            self.options.app_path, self.options.torch_index_url, TORCH_PACKAGES
        )
        directives += self._extra_directives()
        logger.info(f"📦 Applying {len(directives)} package directives:")
        print_list_tree(directives)
        self.installer.apply(directives)

    def install_wheel(self) -> None:
        wheels_dir = self.options.app_path.parent / "wheels"
        path = fetch_wheel(Downloader(), self.options.wheel_url, wheels_dir)
        self.installer.apply([PackageDirective(packages=[str(path)])])

    def reconcile_plugins(self) -> None:
        urls = load_plugin_list(self.options.plugin_list_path)
        locations, rejected = build_locations(urls, self.config_manager.get_list("plugins"))
        reconciler = PluginSetReconciler(
            self.synchronizer, self.installer, fail_fast=self.options.plugins_fail_fast
        )
        self.plugin_report = reconciler.reconcile(
            locations, self.options.app_path / "custom_nodes", rejected
        )

    def write_helpers(self) -> None:
        write_helper_scripts(
            self.options.app_path, self.env, self.options.port, self.options.extra_args
        )

    def emit_manifest(self) -> None:
        emit(self.options.models_dir, self.options.app_path / MANIFEST_NAME)

    def check_liveness(self) -> None:
        prober = LivenessProber(
            self.options.url,
            timeout=self.options.probe_timeout,
            interval=self.options.probe_interval,
            log_dir=self.options.log_dir,
        )
        command = [str(self.env.python.absolute()), "main.py"] + launch_args(
            self.options.port, self.options.extra_args
        )
        if prober.probe(command, cwd=self.options.app_path) is ProbeResult.FAIL:
            raise LivenessTimeout(
                f"ComfyUI did not answer on {self.options.url}, see {prober.stderr_path}"
            )

    def _summary(self) -> None:
        logger.info("--- Install Summary ---")
        logger.info(f"🧭 Mode: {self.run_mode.value} ({self.mode.value})")
        logger.info(f"✅ Completed {len(self.completed)} steps:")
        print_list_tree(self.completed)
        report: ReconcileReport | None = self.plugin_report
        if report is not None and report.total:
            logger.info(
                f"🧩 Plugins: {report.total - len(report.failed)}/{report.total} success "
                f"(cloned: {len(report.cloned)}, updated: {len(report.updated)})"
            )
            if report.failed:
                logger.warning(f"⚠️ Plugins: {len(report.failed)} failed:")
                print_list_tree(
                    [f"{name}: {error}" for name, error in report.failed],
                    level=logging.WARNING,
                )
        logger.info("--------------------")

    def _execute(self) -> int:
        # 1. load config & classify the target once
        self.config_manager = ConfigManager(self.options.config_dir)
        self.run_mode = select_run_mode(self.options.app_path, self.options.env_dir)
        logger.info(f"🧭 Run mode: {self.run_mode.value}")
        if self.run_mode is RunMode.REPAIR:
            logger.warning("⚠️ ComfyUI found without a virtual environment, repairing")

        # 2. user choices, then probe prerequisites
        self._resolve_choices()
        probe = self.prober.probe(require_aria2c=self.options.fetch_wheel)
        self.python_command = probe.python_command

        # 3. execute the plan
        plan = build_plan(
            self.mode,
            fetch_wheel=self.options.fetch_wheel,
            emit_manifest=self.options.models_dir is not None,
        )
        actions = {
            Step.SYNC_APP: self.sync_app,
            Step.ENSURE_ENV: self.ensure_env,
            Step.INSTALL_PACKAGES: self.install_packages,
            Step.FETCH_WHEEL: self.install_wheel,
            Step.RECONCILE_PLUGINS: self.reconcile_plugins,
            Step.WRITE_HELPERS: self.write_helpers,
            Step.EMIT_MANIFEST: self.emit_manifest,
            Step.LIVENESS: self.check_liveness,
        }
        logger.info(f"🛠️ Plan with {len(plan)} steps:")
        print_list_tree(plan)
        with Progress(total_steps=len(plan)) as p:
            for step in plan:
                p.advance()
                logger.info(f"▶️ {step}")
                actions[step]()
                self.completed.append(step)

        self._summary()
        if self.plugin_report is not None and not self.plugin_report.ok:
            return 1
        return 0

    def run(self) -> int:
        try:
            return self._execute()
        except InstallerError as e:
            logger.error(f"❌ {e}")
        except KeyboardInterrupt:
            logger.error("❌ Interrupted")
        return 1


def main() -> int:
    options = InstallOptions.from_env()
    transcript = setup_transcript(options.log_dir)
    logger.info(f"📝 Logging to {transcript}")
    mode = detect_execution_mode()
    return ComfyUIInstaller(options, mode).run()
