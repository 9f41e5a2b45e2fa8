"""Mount helpers for the ESP of the install medium."""
from subprocess import CalledProcessError
import contextlib
import os
import re
import stat

from .errors import PreconditionError, ToolError
from .executil import describe_failure, run, trace, udev_settle

ESP_INDEX = 2


def esp_partition(device: str, index: int = ESP_INDEX) -> str:
    """Return the node of partition ``index`` on ``device``.

    Symlinks such as ``/dev/disk/by-id/...`` are resolved to the kernel node
    first.  Disks whose name ends in a digit (``nvme0n1``, ``mmcblk0``,
    ``loop0``) get a ``p`` separator, as the kernel names them.
    """

    base = _device_realpath(device.rstrip("/"))
    if re.search(r"\d$", base):
        return f"{base}p{index}"
    return f"{base}{index}"


def is_block_device(path: str) -> bool:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as exc:  # noqa: PERF203 - surface unexpected stat failures
        trace("mounts.stat_error", path=path, error=str(exc))
        return False
    return stat.S_ISBLK(st.st_mode)


def _device_realpath(dev: str) -> str:
    try:
        return os.path.realpath(dev)
    except OSError:
        return dev


def device_mountpoints(dev: str) -> list[str]:
    mountpoints: list[str] = []
    real = _device_realpath(dev)
    try:
        with open("/proc/self/mountinfo", "r", encoding="utf-8") as fh:
            for line in fh:
                parts = line.strip().split()
                if not parts:
                    continue
                with contextlib.suppress(ValueError):
                    dash = parts.index("-")
                    source_idx = dash + 2
                    if source_idx >= len(parts):
                        continue
                    source = parts[source_idx]
                    if _device_realpath(source) == real:
                        mountpoints.append(parts[4].replace("\\040", " "))
    except FileNotFoundError:
        return []
    except OSError as exc:  # noqa: PERF203 - ensure unexpected failures get surfaced via trace
        trace("mounts.mountinfo_error", device=dev, error=str(exc))
    return mountpoints


def prepare_mount_dir(path: str) -> None:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise ToolError(f"could not create mount point {path}: {exc}") from exc
    leftovers = os.listdir(path)
    if leftovers:
        raise PreconditionError(
            f"mount point {path} already exists and is not empty",
            state={"mount_point": path, "entries": sorted(leftovers)[:10]},
        )


def _abandon_mount(target: str) -> None:
    with contextlib.suppress(OSError):
        run(["umount", target], check=False)
    with contextlib.suppress(OSError):
        os.rmdir(target)
    trace("mounts.abandoned", target=target)


def mount_esp(partition: str, target: str) -> None:
    prepare_mount_dir(target)
    try:
        run(["mount", partition, target], check=True)
    except CalledProcessError as exc:
        with contextlib.suppress(OSError):
            os.rmdir(target)
        raise ToolError(
            f"mount {partition} on {target} failed: {describe_failure(exc)}",
            state={"partition": partition, "rc": exc.returncode},
        ) from exc
    except BaseException:
        # interrupted while mount ran; it may or may not have completed
        _abandon_mount(target)
        raise
    trace("mounts.mounted", partition=partition, target=target)


def unmount_esp(target: str) -> None:
    """Unmount ``target`` and remove the directory; any failure is fatal."""

    try:
        run(["umount", target], check=True)
    except CalledProcessError as exc:
        raise ToolError(
            f"umount {target} failed: {describe_failure(exc)}",
            state={"target": target, "rc": exc.returncode},
        ) from exc
    udev_settle()
    try:
        os.rmdir(target)
    except OSError as exc:
        raise ToolError(f"could not remove mount point {target}: {exc}") from exc
    trace("mounts.unmounted", target=target)


def unmount_best_effort(target: str) -> str | None:
    """Try :func:`unmount_esp`; return the failure text instead of raising."""

    try:
        unmount_esp(target)
    except ToolError as exc:
        trace("mounts.unmount_best_effort_failed", target=target, error=str(exc))
        return str(exc)
    return None
