from __future__ import annotations

import os
from pathlib import Path

from .model import Layout

_DEFAULT_BASE = "/var/lib/sbmedium"


def _expand(path: str) -> str:
    candidate = Path(path).expanduser()
    try:
        return str(candidate.resolve())
    except FileNotFoundError:
        return str(candidate)


def sbmedium_base_path() -> str:
    """Return the base directory for sbmedium state.

    The location can be overridden via the ``SBMEDIUM_BASE_PATH`` environment
    variable.  When unset we fall back to ``/var/lib/sbmedium``.
    """

    override = os.environ.get("SBMEDIUM_BASE_PATH")
    if override:
        return _expand(override)
    return _expand(_DEFAULT_BASE)


def sbmedium_logs_dir() -> str:
    return str(Path(sbmedium_base_path()) / "logs")


def layout_from_env(environ: dict | None = None) -> Layout:
    """Build a :class:`Layout`, applying ``SBMEDIUM_*`` overrides.

    Only the host-side locations are configurable.  The paths under the mount
    root describe the install medium itself and stay fixed.
    """

    env = os.environ if environ is None else environ
    layout = Layout()
    mount_point = env.get("SBMEDIUM_MOUNT_POINT")
    if mount_point:
        layout.mount_point = os.path.abspath(mount_point)
    staging = env.get("SBMEDIUM_STAGING_PATH")
    if staging:
        layout.staging_path = os.path.abspath(staging)
    cmdline = env.get("SBMEDIUM_CMDLINE")
    if cmdline:
        layout.cmdline_file = cmdline
    sbctl = env.get("SBMEDIUM_SBCTL")
    if sbctl:
        layout.sbctl = sbctl
    return layout
