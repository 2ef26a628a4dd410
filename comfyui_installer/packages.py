import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InstallFailure
from .utils import exec_command, logger
from .venv import IsolatedEnvironment


@dataclass
class PackageDirective:
    packages: list[str] = field(default_factory=list)
    requirements: Path | None = None
    index_url: str | None = None
    extra_index_url: str | None = None
    upgrade: bool = False
    description: str | None = None

    def __post_init__(self):
        if not self.packages and not self.requirements:
            raise ValueError("Package directive needs packages or a requirements file")
        if self.requirements:
            self.requirements = Path(self.requirements)

    def __str__(self):
        if self.description:
            return self.description
        if self.requirements:
            return f"-r {self.requirements}"
        return " ".join(self.packages)

    @classmethod
    def from_config(cls, config: dict | str) -> "PackageDirective":
        # a bare string is shorthand for {"packages": "..."}
        if isinstance(config, str):
            config = {"packages": config}
        elif not isinstance(config, dict):
            raise TypeError(f"expected a table or a string, got {type(config).__name__}")
        packages = config.get("packages", [])
        if isinstance(packages, str):
            packages = packages.split()
        return cls(
            packages=list(packages),
            requirements=config.get("requirements"),
            index_url=config.get("index_url"),
            extra_index_url=config.get("extra_index_url"),
            upgrade=bool(config.get("upgrade", False)),
            description=config.get("description"),
        )

    def to_args(self) -> list[str]:
        args = ["install"]
        if self.upgrade:
            args.append("--upgrade")
        if self.index_url:
            args += ["--index-url", self.index_url]
        if self.extra_index_url:
            args += ["--extra-index-url", self.extra_index_url]
        if self.requirements:
            args += ["-r", str(self.requirements)]
        args += self.packages
        return args


def base_directives(
    app_path: Path, torch_index_url: str, torch_packages: list[str]
) -> list[PackageDirective]:
    # torch goes first: resolving it through requirements.txt would pull a CPU-only build
    return [
        PackageDirective(
            packages=list(torch_packages),
            index_url=torch_index_url,
            description=f"{' '.join(torch_packages)} ({torch_index_url})",
        ),
        PackageDirective(
            requirements=app_path / "requirements.txt",
            description="ComfyUI requirements",
        ),
    ]


class PackageInstaller:
    def __init__(self, env: IsolatedEnvironment):
        self.env = env
        self._pip_upgraded = False

    def _pip(self, args: list[str]) -> None:
        exec_command([str(self.env.python), "-m", "pip"] + args, check=True)

    def upgrade_pip(self) -> None:
        logger.info("📦 Upgrading pip...")
        try:
            self._pip(["install", "--upgrade", "pip"])
        except (subprocess.CalledProcessError, OSError) as e:
            raise InstallFailure(f"Failed to upgrade pip: {e}") from e
        self._pip_upgraded = True

    def install(self, directive: PackageDirective) -> None:
        logger.info(f"📦 Installing: {directive}")
        try:
            self._pip(directive.to_args())
        except (subprocess.CalledProcessError, OSError) as e:
            raise InstallFailure(f"Failed to install {directive}: {e}") from e
        logger.info(f"✅ Installed: {directive}")

    def apply(self, directives: list[PackageDirective]) -> None:
        if not self._pip_upgraded:
            self.upgrade_pip()
        for directive in directives:
            self.install(directive)
