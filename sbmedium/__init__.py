"""Prepare an Arch Linux install medium for UEFI Secure Boot."""

__version__ = "0.1.0"
