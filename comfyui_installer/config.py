import re
import tomllib
from collections import defaultdict
from pathlib import Path

from .utils import logger, print_list_tree

NUMERIC_PREFIX = re.compile(r"^(\d+)-")


class ConfigManager:
    def __init__(self, config_dir: Path) -> None:
        self._config = self.load_config(config_dir)

    @property
    def config(self) -> dict:
        return self._config

    def get_list(self, key: str) -> list:
        return self._config.get(key, [])

    def _sort_by_numeric_prefix(self, file_path: Path) -> tuple:
        filename = file_path.name
        match = NUMERIC_PREFIX.match(filename)
        if match:
            return (int(match.group(1)), filename)
        # If no numeric prefix, sort after numbered files
        return (float("inf"), filename)

    def _parse_config_files(self, files: list[Path]) -> dict:
        full_config = defaultdict(list)
        for file in files:
            try:
                config = tomllib.loads(file.read_text(encoding="utf-8"))
            except (tomllib.TOMLDecodeError, OSError) as e:
                logger.error(f"❌ Failed to parse config file '{file}': {str(e)}")
                continue
            for key, value in config.items():
                if not isinstance(value, list):
                    logger.warning(f"⚠️ Ignoring non-list key '{key}' in {file.name}")
                    continue
                full_config[key].extend(value)
        return dict(full_config)

    def load_config(self, dir: Path) -> dict:
        if not dir.is_dir():
            logger.info("ℹ️ No config directory found")
            return {}

        logger.info(f"📂 Loading config: {dir}")
        config_files = sorted(dir.rglob("*.toml"), key=self._sort_by_numeric_prefix)
        logger.info(f"📄 Found {len(config_files)} config files:")
        print_list_tree(config_files)

        config = self._parse_config_files(config_files)
        if not config:
            logger.info("ℹ️ No valid config found")
        logger.debug(f"🛠️ Loaded config: {config}")
        return config
