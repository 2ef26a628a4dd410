from pathlib import Path

import yaml

from .errors import ConfigInputInvalid
from .utils import logger, print_list_tree

MANIFEST_HEADER = (
    "# Auto-generated by comfyui-installer, regenerated on every run.\n"
    "# Manual edits to this file will be lost.\n"
)
DEFAULT_SECTION = "comfyui_installer"


def scan_model_dirs(models_root: Path) -> dict[str, str]:
    mapping = {}
    for entry in sorted(models_root.iterdir(), key=lambda p: p.name):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if entry.name == "base_path":
            logger.warning(f"⚠️ Skipping {entry}: name clashes with base_path")
            continue
        mapping[entry.name] = entry.resolve().as_posix()
    return mapping


def emit(models_root: Path, output_path: Path, section: str = DEFAULT_SECTION) -> dict:
    """Write an ``extra_model_paths.yaml`` mapping every visible subdirectory of
    ``models_root`` to its absolute path.

    The output file is replaced wholesale; a missing ``models_root`` raises
    :class:`ConfigInputInvalid`.
    """
    if not models_root.is_dir():
        raise ConfigInputInvalid(f"Models directory does not exist: {models_root}")

    mapping = scan_model_dirs(models_root)
    document = {section: {"base_path": models_root.resolve().as_posix(), **mapping}}

    logger.info(f"📄 Writing {output_path} with {len(mapping)} model folders:")
    print_list_tree(mapping)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    content = MANIFEST_HEADER + yaml.safe_dump(
        document, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    output_path.write_text(content, encoding="utf-8")
    logger.info(f"✅ Path-mapping manifest saved to {output_path}")
    return document
