import os
from pathlib import Path


def get_bool_env(var_name: str, default: bool = False) -> bool:
    value = os.environ.get(var_name)
    if value is None:
        return default
    value = value.lower()
    if value in ("true", "1", "t", "yes", "y"):
        return True
    elif value in ("false", "0", "f", "no", "n"):
        return False
    else:
        return default


def get_path_env(var_name: str, default: Path) -> Path:
    value = os.environ.get(var_name)
    return Path(value) if value else default


def get_float_env(var_name: str, default: float) -> float:
    value = os.environ.get(var_name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


WORKDIR = get_path_env("WORKDIR", Path.cwd())
COMFYUI_PATH = get_path_env("COMFYUI_PATH", WORKDIR / "ComfyUI")
COMFYUI_REPO_URL = os.environ.get(
    "COMFYUI_REPO_URL", "https://github.com/comfyanonymous/ComfyUI.git"
)
COMFYUI_REF = os.environ.get("COMFYUI_REF", None)
COMFYUI_PORT = int(os.environ.get("COMFYUI_PORT", "8188"))
COMFYUI_EXTRA_ARGS = os.environ.get("COMFYUI_EXTRA_ARGS", None)
VENV_NAME = "venv"

# interpreter the isolated environment is created from
PYTHON_VERSION = os.environ.get("PYTHON_VERSION", "3.12")

PLUGIN_LIST_PATH = get_path_env("PLUGIN_LIST_PATH", WORKDIR / "custom_nodes.txt")
PLUGINS_FAIL_FAST = get_bool_env("PLUGINS_FAIL_FAST", False)
CONFIG_DIR = get_path_env("CONFIG_DIR", WORKDIR / "config")
LOG_DIR = get_path_env("LOG_DIR", WORKDIR / "logs")
MODELS_DIR = os.environ.get("MODELS_DIR", None)
MANIFEST_NAME = "extra_model_paths.yaml"

TORCH_INDEX_URL = os.environ.get(
    "TORCH_INDEX_URL", "https://download.pytorch.org/whl/cu128"
)
TORCH_PACKAGES = ["torch", "torchvision", "torchaudio"]

PREBUILT_WHEEL_URL = os.environ.get(
    "PREBUILT_WHEEL_URL",
    "https://github.com/Gourieff/Assets/raw/main/Insightface/insightface-0.7.3-cp312-cp312-win_amd64.whl",
)
INSTALL_PREBUILT_WHEEL = get_bool_env("INSTALL_PREBUILT_WHEEL", False)

PROBE_TIMEOUT = get_float_env("PROBE_TIMEOUT", 300.0)
PROBE_INTERVAL = get_float_env("PROBE_INTERVAL", 2.0)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
