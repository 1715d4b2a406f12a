"""Exception types raised by the Snakk installer."""


class InstallerError(Exception):
    """Base class for every fatal installer condition."""


class ConfigError(InstallerError):
    """Invalid installer settings (environment or flags)."""


class MemoryProbeError(InstallerError):
    """Total system memory could not be measured."""


class ConfigPathError(InstallerError):
    """A directory that must receive generated files is not writable."""


class ArtifactWriteError(InstallerError):
    """A rendered artifact could not be persisted."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class PrerequisiteError(InstallerError):
    """A required tool is missing and could not be installed."""


class CheckoutError(InstallerError):
    """The application source could not be cloned or updated."""


class InstallLockError(InstallerError):
    """Another installation is already running against the same directory."""
