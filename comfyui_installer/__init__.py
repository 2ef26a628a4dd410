"""Bootstrap and keep a local ComfyUI installation up to date."""

__version__ = "0.1.0"
