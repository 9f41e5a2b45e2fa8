"""The provisioning workflow: mount, bundle, sign, write entry, unmount."""
from __future__ import annotations

import enum
from typing import Optional

from . import bundle, preflight
from .boot_entry import write_entry
from .executil import trace
from .model import Layout, Target
from .mounts import mount_esp, unmount_best_effort, unmount_esp
from .signing import sign


class Stage(enum.Enum):
    UNVALIDATED = "unvalidated"
    MOUNTED = "mounted"
    GUARDED = "guarded"
    BUNDLED = "bundled"
    CLEANED = "cleaned"
    RELOCATED = "relocated"
    SIGNED = "signed"
    ENTRY_WRITTEN = "entry_written"
    UNMOUNTED = "unmounted"
    FAILED = "failed"


class Workflow:
    """One run against one device.

    Stages only move forward.  Any exception moves the run to
    ``Stage.FAILED``; when the partition was mounted by then, an unmount is
    attempted and its failure, if any, is kept in ``teardown_error`` while the
    original exception propagates.
    """

    def __init__(self, device: Optional[str], layout: Optional[Layout] = None):
        self.device = device
        self.layout = layout or Layout()
        self.stage = Stage.UNVALIDATED
        self.target: Optional[Target] = None
        self.teardown_error: Optional[str] = None
        self._mounted = False

    def _advance(self, stage: Stage) -> None:
        trace("workflow.stage", device=self.device, src=self.stage.value, dst=stage.value)
        self.stage = stage

    def run(self) -> Target:
        try:
            self._run()
        except BaseException:
            self._advance(Stage.FAILED)
            if self._mounted:
                self.teardown_error = unmount_best_effort(self.layout.mount_point)
                self._mounted = False
            raise
        return self.target

    def _run(self) -> None:
        layout = self.layout
        self.target = preflight.validate(self.device, layout)

        mount_esp(self.target.partition, layout.mount_point)
        self._mounted = True
        self._advance(Stage.MOUNTED)

        bundle.guard_bundle_absent(layout)
        preflight.assert_medium_contents(layout)
        self._advance(Stage.GUARDED)

        with bundle.StagedBundle(layout.staging_path):
            bundle.build_bundle(layout)
            self._advance(Stage.BUNDLED)
            bundle.remove_sources(layout)
            self._advance(Stage.CLEANED)
            bundle.relocate(layout)
            self._advance(Stage.RELOCATED)

        sign(layout.on_medium(layout.bundle), sbctl=layout.sbctl)
        sign(layout.on_medium(layout.bootloader), sbctl=layout.sbctl)
        self._advance(Stage.SIGNED)

        write_entry(layout)
        self._advance(Stage.ENTRY_WRITTEN)

        # strict: a failed unmount here is fatal and is not retried
        self._mounted = False
        unmount_esp(layout.mount_point)
        self._advance(Stage.UNMOUNTED)
