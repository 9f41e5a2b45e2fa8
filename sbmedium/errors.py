"""Error taxonomy for the provisioning workflow."""

from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class; ``kind`` names the result recorded for the failure."""

    kind = "FAIL_GENERIC"

    def __init__(self, message: str, *, state: dict | None = None) -> None:
        super().__init__(message)
        self.state = state or {}


class PreconditionError(ProvisionError):
    kind = "FAIL_PRECONDITION"


class BundleExistsError(ProvisionError):
    kind = "FAIL_BUNDLE_EXISTS"


class ToolError(ProvisionError):
    """An external command (mount, umount, sbctl) failed."""

    kind = "FAIL_TOOL"


class CleanupError(ProvisionError):
    kind = "FAIL_CLEANUP"


class InterruptedRun(ProvisionError):
    kind = "FAIL_INTERRUPTED"


class WriteError(ProvisionError):
    """A file could not be written on the mounted medium."""

    kind = "FAIL_WRITE"
