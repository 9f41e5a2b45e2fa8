import os
from dataclasses import dataclass

ENTRY_TITLE = "Arch Linux install medium (x86_64, UEFI, Secure Boot)"


@dataclass
class Layout:
    mount_point: str = "/mnt/sbmedium"
    staging_path: str = "/tmp/sbmedium-linux.efi"
    cmdline_file: str = "cmdline.txt"
    sbctl: str = "sbctl"
    # relative to the mount root
    kernel: str = "arch/boot/x86_64/vmlinuz-linux"
    initramfs: str = "arch/boot/x86_64/initramfs-linux.img"
    intel_ucode: str = "arch/boot/intel-ucode.img"
    amd_ucode: str = "arch/boot/amd-ucode.img"
    bundle: str = "arch/boot/x86_64/linux.efi"
    bootloader: str = "EFI/BOOT/BOOTx64.EFI"
    entry: str = "loader/entries/01-archiso-x86_64-linux.conf"

    def on_medium(self, rel: str) -> str:
        return os.path.join(self.mount_point, rel)

    @property
    def bundle_efi_path(self) -> str:
        """Path of the bundle as the boot loader sees it."""
        return "/" + self.bundle.lstrip("/")


@dataclass
class Target:
    device: str
    partition: str
