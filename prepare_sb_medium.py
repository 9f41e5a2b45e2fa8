#!/usr/bin/env python3
"""
prepare_sb_medium.py - sign an Arch Linux install medium for Secure Boot

Usage: sudo ./prepare_sb_medium.py /dev/sdX

Mounts the ESP (partition 2), bundles kernel, initramfs and microcode into
arch/boot/x86_64/linux.efi with sbctl, signs it and the boot loader, writes
the loader entry and unmounts.  Expects cmdline.txt in the working directory.
"""

from sbmedium.cli import main

if __name__ == "__main__":
    main()
