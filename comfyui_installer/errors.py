class InstallerError(Exception):
    """Base class for every failure that terminates an installer run."""


class PrerequisiteMissing(InstallerError):
    def __init__(self, tool: str, detail: str | None = None):
        self.tool = tool
        message = f"Required tool not found: {tool}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class SyncFailure(InstallerError):
    def __init__(self, url: str, detail: str):
        self.url = url
        super().__init__(f"Failed to synchronize {url}: {detail}")


class InstallFailure(InstallerError):
    pass


class ConfigInputInvalid(InstallerError):
    pass


class LivenessTimeout(InstallerError):
    pass
