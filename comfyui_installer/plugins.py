from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InstallerError, SyncFailure
from .packages import PackageDirective, PackageInstaller
from .repository import RepositorySynchronizer, SourceLocation, SyncResult
from .utils import Progress, logger, print_list_tree

REQUIREMENTS_FILE = "requirements.txt"


def parse_plugin_list(text: str) -> list[str]:
    urls = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        urls.append(line)
    return urls


def load_plugin_list(path: Path) -> list[str]:
    if not path.is_file():
        logger.info(f"ℹ️ No plugin list found at {path}, skipping plugins")
        return []
    urls = parse_plugin_list(path.read_text(encoding="utf-8"))
    logger.info(f"📄 Loaded {len(urls)} plugins from {path}")
    return urls


def _plugin_config(entry) -> dict:
    if isinstance(entry, str):
        return {"url": entry}
    if not isinstance(entry, dict):
        raise TypeError(f"expected a URL or a table, got {type(entry).__name__}")
    if "url" not in entry:
        raise KeyError("missing 'url'")
    if not isinstance(entry["url"], str):
        raise TypeError("'url' must be a string")
    return entry


def build_locations(
    urls: list[str], extra_config: list | None = None
) -> tuple[list[SourceLocation], list[SyncFailure]]:
    """Turn plugin list lines and config entries into sync targets.

    Entries that cannot become a SourceLocation are returned as failures so the
    reconciler reports them instead of dropping them.
    """
    all_locations: list[SourceLocation] = []
    rejected: list[SyncFailure] = []
    for entry in list(urls) + list(extra_config or []):
        try:
            config = _plugin_config(entry)
            all_locations.append(SourceLocation(config["url"], config.get("branch")))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Invalid plugin entry: {str(e)}\n{entry}")
            url = entry.get("url", entry) if isinstance(entry, dict) else entry
            rejected.append(SyncFailure(str(url), f"invalid plugin entry: {str(e)}"))

    # keep first occurrence of each directory name, order preserved
    unique: dict[str, SourceLocation] = {}
    for location in all_locations:
        unique.setdefault(location.name, location)
    if len(unique) < len(all_locations):
        counts = Counter(location.name for location in all_locations)
        duplicates = [name for name, count in counts.items() if count > 1]
        logger.warning(f"⚠️ Found {len(duplicates)} plugin directory collisions, keeping first:")
        print_list_tree(duplicates)
    return list(unique.values()), rejected


@dataclass
class ReconcileReport:
    cloned: list[SourceLocation] = field(default_factory=list)
    updated: list[SourceLocation] = field(default_factory=list)
    # (directory name or raw entry, error message)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.cloned) + len(self.updated) + len(self.failed)


class PluginSetReconciler:
    def __init__(
        self,
        synchronizer: RepositorySynchronizer,
        installer: PackageInstaller,
        fail_fast: bool = False,
    ):
        self.synchronizer = synchronizer
        self.installer = installer
        self.fail_fast = fail_fast

    def _reconcile_one(self, location: SourceLocation, plugins_root: Path) -> SyncResult:
        target_dir = plugins_root / location.name
        result = self.synchronizer.sync(location, target_dir)
        requirements = target_dir / REQUIREMENTS_FILE
        if requirements.is_file():
            self.installer.apply(
                [
                    PackageDirective(
                        requirements=requirements,
                        description=f"{location.name} requirements",
                    )
                ]
            )
        return result

    def reconcile(
        self,
        locations: list[SourceLocation],
        plugins_root: Path,
        rejected: list[SyncFailure] | None = None,
    ) -> ReconcileReport:
        report = ReconcileReport()
        rejected = rejected or []
        for failure in rejected:
            if self.fail_fast:
                raise failure
            logger.error(f"❌ {failure}")
            report.failed.append((failure.url, str(failure)))

        if not locations:
            logger.info("🧩 No plugins to reconcile")
            return report

        logger.info(f"🧩 Reconciling {len(locations)} plugins:")
        print_list_tree(locations)
        with Progress(total_steps=len(locations)) as p:
            for location in locations:
                p.advance()
                try:
                    result = self._reconcile_one(location, plugins_root)
                except InstallerError as e:
                    if self.fail_fast:
                        raise
                    logger.error(f"❌ {location.name}: {e}")
                    report.failed.append((location.name, str(e)))
                    continue
                if result is SyncResult.CLONED:
                    report.cloned.append(location)
                else:
                    report.updated.append(location)
        return report
