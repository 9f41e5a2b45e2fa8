import ast
import os
import shutil
import subprocess
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, Set

import pytest

_ROOT_DIR = Path(__file__).absolute().parent.parent
_PACKAGE_DIR = (_ROOT_DIR / "sbmedium").absolute()

_EXECUTED: Dict[str, Set[int]] = defaultdict(set)
_STATEMENTS: Dict[str, Set[int]] = {}
_PREVIOUS_TRACE = None


def _statement_lines(path: Path) -> Set[int]:
    try:
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except SyntaxError:
        return set()
    return {
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.stmt) and not isinstance(node, (ast.FunctionDef, ast.ClassDef, ast.Import, ast.ImportFrom))
    }


for _path in sorted(_PACKAGE_DIR.glob("*.py")):
    _STATEMENTS[str(_path)] = _statement_lines(_path)


def _trace(frame, event, arg):
    filename = frame.f_code.co_filename
    if filename not in _STATEMENTS:
        return None
    if event == "line":
        _EXECUTED[filename].add(frame.f_lineno)
    return _trace


def pytest_sessionstart(session):
    global _PREVIOUS_TRACE
    _PREVIOUS_TRACE = sys.gettrace()
    sys.settrace(_trace)


def pytest_sessionfinish(session, exitstatus):
    sys.settrace(_PREVIOUS_TRACE)
    terminal = session.config.pluginmanager.get_plugin("terminalreporter")
    write_line = terminal.write_line if terminal else print
    write_line("")
    write_line("Coverage summary for 'sbmedium':")
    header = f"{'Name':<40} {'Stmts':>6} {'Miss':>6} {'Cover':>7}"
    write_line(header)
    write_line("-" * len(header))
    total = hit = 0
    for filename, stmts in _STATEMENTS.items():
        if not stmts:
            continue
        covered = len(_EXECUTED[filename] & stmts)
        total += len(stmts)
        hit += covered
        name = os.path.relpath(filename, _ROOT_DIR)
        write_line(f"{name:<40} {len(stmts):>6} {len(stmts) - covered:>6} {covered / len(stmts) * 100:>6.1f}%")
    if total:
        write_line("-" * len(header))
        write_line(f"{'TOTAL':<40} {total:>6} {total - hit:>6} {hit / total * 100:>6.1f}%")


class FakeHost:
    """Stands in for mount, umount and sbctl.

    ``medium`` is the content of the ESP.  Mounting copies it into the mount
    point, unmounting copies the mount point back and empties it.
    """

    def __init__(self, medium: Path):
        self.medium = medium
        self.mounted: Dict[str, str] = {}
        self.commands: list[list[str]] = []
        self.signed: list[str] = []
        self.fail: Dict[tuple, str] = {}
        self.on_bundle = None

    def _maybe_fail(self, cmd):
        for key in (tuple(cmd), tuple(cmd[:2])):
            if key in self.fail:
                raise subprocess.CalledProcessError(1, cmd, "", self.fail[key])

    def run(self, cmd, check=True, **_kwargs):
        cmd = list(cmd)
        self.commands.append(cmd)
        self._maybe_fail(cmd)
        if cmd[0] == "mount":
            partition, target = cmd[1], cmd[2]
            shutil.copytree(self.medium, target, dirs_exist_ok=True)
            self.mounted[target] = partition
        elif cmd[0] == "umount":
            target = cmd[1]
            self.mounted.pop(target)
            shutil.rmtree(self.medium)
            shutil.copytree(target, self.medium)
            for entry in os.listdir(target):
                path = os.path.join(target, entry)
                if os.path.isdir(path):
                    shutil.rmtree(path)
                else:
                    os.remove(path)
        elif cmd[1] == "bundle":
            self._bundle(cmd)
        elif cmd[1] == "sign":
            with open(cmd[2], "ab") as fh:
                fh.write(b"#signed")
            self.signed.append(cmd[2])
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def _bundle(self, cmd):
        args = dict(zip(cmd[2:-1:2], cmd[3:-1:2]))
        output = cmd[-1]
        with open(output, "wb") as out:
            for flag in ("--intelucode", "--amducode", "--kernel-img", "--initramfs"):
                if flag in args:
                    with open(args[flag], "rb") as fh:
                        out.write(fh.read())
        if self.on_bundle:
            self.on_bundle(output)


def make_medium(root: Path, amd: bool = False) -> Path:
    boot = root / "arch" / "boot"
    (boot / "x86_64").mkdir(parents=True)
    (boot / "x86_64" / "vmlinuz-linux").write_bytes(b"kernel")
    (boot / "x86_64" / "initramfs-linux.img").write_bytes(b"initramfs")
    (boot / "intel-ucode.img").write_bytes(b"intel")
    if amd:
        (boot / "amd-ucode.img").write_bytes(b"amd")
    (root / "EFI" / "BOOT").mkdir(parents=True)
    (root / "EFI" / "BOOT" / "BOOTx64.EFI").write_bytes(b"systemd-boot")
    (root / "loader" / "entries").mkdir(parents=True)
    (root / "loader" / "entries" / "01-archiso-x86_64-linux.conf").write_text("title Arch Linux install medium (x86_64, UEFI)\n", encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def _isolated_log(tmp_path, monkeypatch):
    from sbmedium import executil

    monkeypatch.setattr(executil, "LOG_DIRS", [str(tmp_path / "logs")])
    monkeypatch.setattr(executil, "LOG_PATH", None)


@pytest.fixture
def layout(tmp_path):
    from sbmedium.model import Layout

    cmdline = tmp_path / "cmdline.txt"
    cmdline.write_text("archisobasedir=arch archisosearchuuid=2024-01-01-00-00-00-00\n", encoding="utf-8")
    return Layout(
        mount_point=str(tmp_path / "mnt"),
        staging_path=str(tmp_path / "tmp" / "linux.efi"),
        cmdline_file=str(cmdline),
    )


@pytest.fixture
def host(tmp_path, monkeypatch):
    """A privileged host with /dev/sdb whose ESP is a fresh archiso layout."""
    from sbmedium import bundle, mounts, preflight, signing

    (tmp_path / "tmp").mkdir()
    fake = FakeHost(make_medium(tmp_path / "medium"))
    for module in (mounts, bundle, signing):
        monkeypatch.setattr(module, "run", fake.run)
    monkeypatch.setattr(mounts, "udev_settle", lambda: None)
    monkeypatch.setattr(preflight.os, "geteuid", lambda: 0)
    monkeypatch.setattr(preflight, "is_block_device", lambda path: path in ("/dev/sdb", "/dev/sdb2"))
    monkeypatch.setattr(preflight, "device_mountpoints", lambda dev: [])
    monkeypatch.setattr(preflight.safety, "guard_not_live_disk", lambda dev: (True, ""))
    monkeypatch.setattr(preflight.shutil, "which", lambda name: f"/usr/bin/{name}")
    return fake


@pytest.fixture
def mounted(layout):
    """``layout`` with an archiso ESP already present at the mount point."""
    make_medium(Path(layout.mount_point))
    os.makedirs(os.path.dirname(layout.staging_path), exist_ok=True)
    return layout
