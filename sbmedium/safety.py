"""Refuse to touch the disk the running system lives on."""

from __future__ import annotations

import os
import subprocess


def _capture(cmd: list[str]) -> str:
    try:
        return subprocess.check_output(cmd, text=True, stderr=subprocess.DEVNULL).strip()
    except (OSError, subprocess.CalledProcessError):
        return ""


def _parent_disk(mountpoint: str) -> str:
    src = _capture(["findmnt", "-no", "SOURCE", mountpoint])
    if not src:
        return ""
    # lsblk prints one line per holder for dm devices; the first is enough
    lines = _capture(["lsblk", "-no", "PKNAME", src]).splitlines()
    return lines[0].strip() if lines else ""


def guard_not_live_disk(device: str) -> tuple[bool, str]:
    """
    Refuse when ``device`` is the disk backing ``/`` or ``/boot``.
    Returns (ok, reason).
    """
    devname = os.path.basename(os.path.realpath(device))
    for mountpoint in ("/", "/boot"):
        live = _parent_disk(mountpoint)
        if live and live == devname:
            return False, f"{device} backs the running system ({mountpoint} is on {live})"
    return True, ""
