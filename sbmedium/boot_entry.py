"""Write the systemd-boot loader entry for the bundle."""
import os

from .errors import WriteError
from .model import ENTRY_TITLE, Layout


def render_entry(layout: Layout) -> str:
    lines = [
        f"title {ENTRY_TITLE}",
        f"efi {layout.bundle_efi_path}",
    ]
    return "\n".join(lines) + "\n"


def write_entry(layout: Layout) -> str:
    path = layout.on_medium(layout.entry)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_entry(layout))
            f.flush()
            os.fsync(f.fileno())
    except OSError as exc:
        raise WriteError(f"could not write boot entry {path}: {exc}", state={"entry": path}) from exc
    return path
