"""Build, stage and place the signed EFI bundle."""
from __future__ import annotations

import contextlib
import os
import shutil
from subprocess import CalledProcessError

from .errors import BundleExistsError, CleanupError, ToolError
from .executil import describe_failure, run, trace
from .model import Layout


def guard_bundle_absent(layout: Layout) -> None:
    path = layout.on_medium(layout.bundle)
    if os.path.exists(path):
        raise BundleExistsError(
            f"{path} already exists, this medium has been prepared before",
            state={"bundle": path},
        )


class StagedBundle:
    """Owns the staged bundle file until it is moved onto the medium.

    Leaving the ``with`` block by any route (exception, ``KeyboardInterrupt``
    or ``SystemExit`` from a signal handler) removes whatever is still at the
    staging path.
    """

    def __init__(self, path: str):
        self.path = path

    def _discard(self) -> bool:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        return True

    def __enter__(self) -> "StagedBundle":
        if self._discard():
            trace("bundle.stale_removed", path=self.path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._discard():
            trace("bundle.staged_removed", path=self.path, error=repr(exc) if exc else None)


def bundle_command(layout: Layout) -> list[str]:
    cmd = [
        layout.sbctl,
        "bundle",
        "--cmdline", layout.cmdline_file,
        "--intelucode", layout.on_medium(layout.intel_ucode),
    ]
    amd = layout.on_medium(layout.amd_ucode)
    if os.path.isfile(amd):
        cmd += ["--amducode", amd]
    cmd += [
        "--kernel-img", layout.on_medium(layout.kernel),
        "--initramfs", layout.on_medium(layout.initramfs),
        layout.staging_path,
    ]
    return cmd


def build_bundle(layout: Layout) -> str:
    try:
        run(bundle_command(layout), check=True)
    except CalledProcessError as exc:
        raise ToolError(
            f"sbctl bundle failed: {describe_failure(exc)}",
            state={"rc": exc.returncode, "output": layout.staging_path},
        ) from exc
    if not os.path.isfile(layout.staging_path):
        raise ToolError(f"sbctl bundle did not produce {layout.staging_path}")
    trace("bundle.built", path=layout.staging_path, size=os.path.getsize(layout.staging_path))
    return layout.staging_path


def remove_sources(layout: Layout) -> list[str]:
    removed = []
    for rel in (layout.kernel, layout.initramfs, layout.intel_ucode):
        path = layout.on_medium(rel)
        try:
            os.remove(path)
        except OSError as exc:
            raise CleanupError(f"could not remove {path}: {exc}") from exc
        removed.append(path)
    amd = layout.on_medium(layout.amd_ucode)
    try:
        os.remove(amd)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise CleanupError(f"could not remove {amd}: {exc}") from exc
    else:
        removed.append(amd)
    trace("bundle.sources_removed", paths=removed)
    return removed


def relocate(layout: Layout) -> str:
    """Copy the staged bundle onto the medium, then drop the staged file.

    The copy lands next to the target and is renamed into place, so the
    bundle path only ever holds a complete file.
    """

    dst = layout.on_medium(layout.bundle)
    partial = dst + ".part"
    try:
        os.makedirs(os.path.dirname(dst), exist_ok=True)
        shutil.copyfile(layout.staging_path, partial)
        os.replace(partial, dst)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.remove(partial)
        raise CleanupError(f"could not move bundle to {dst}: {exc}") from exc
    with contextlib.suppress(FileNotFoundError):
        os.remove(layout.staging_path)
    trace("bundle.relocated", src=layout.staging_path, dst=dst)
    return dst
