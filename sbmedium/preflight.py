"""Precondition checks run before anything is mounted."""
from __future__ import annotations

import os
import shutil

from . import safety
from .errors import PreconditionError
from .executil import trace
from .model import Layout, Target
from .mounts import device_mountpoints, esp_partition, is_block_device


def require_root() -> None:
    if os.geteuid() != 0:
        raise PreconditionError("this script must be run as root")


def require_block_device(device: str | None) -> str:
    if not device:
        raise PreconditionError("no device given (usage: sbmedium /dev/sdX)")
    if not is_block_device(device):
        raise PreconditionError(f"{device} is not a block device")
    return device


def require_tool(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise PreconditionError(f"{name} not found in PATH")
    return path


def require_cmdline(path: str) -> str:
    if not os.path.isfile(path):
        raise PreconditionError(f"kernel command line file {path} not found")
    return path


def validate(device: str | None, layout: Layout) -> Target:
    """Run every check that needs no mount; return the resolved target."""

    require_root()
    device = require_block_device(device)
    partition = esp_partition(device)
    if not is_block_device(partition):
        raise PreconditionError(f"{device} has no partition {partition}")
    ok, reason = safety.guard_not_live_disk(device)
    if not ok:
        raise PreconditionError(reason)
    busy = device_mountpoints(partition)
    if busy:
        raise PreconditionError(
            f"{partition} is already mounted at {', '.join(sorted(busy))}",
            state={"mountpoints": busy},
        )
    require_tool(layout.sbctl)
    require_cmdline(layout.cmdline_file)
    trace("preflight.ok", device=device, partition=partition)
    return Target(device=device, partition=partition)


def assert_medium_contents(layout: Layout) -> None:
    """The mounted partition must look like an unprepared archiso ESP."""
    need = [layout.kernel, layout.initramfs, layout.intel_ucode, layout.bootloader]
    missing = [rel for rel in need if not os.path.isfile(layout.on_medium(rel))]
    if missing:
        raise PreconditionError(
            "install medium is missing " + ", ".join(missing),
            state={"missing": missing},
        )
