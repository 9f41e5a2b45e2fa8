"""CLI entrypoint for the Secure Boot install-medium preparer."""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from typing import Any, Dict, NoReturn, Optional

from .errors import InterruptedRun, ProvisionError
from .executil import append_jsonl, resolve_log_path, trace
from .paths import layout_from_env
from .workflow import Workflow

RESULT_CODES: Dict[str, int] = {
    "DONE_OK": 0,
    "FAIL_PRECONDITION": 1,
    "FAIL_BUNDLE_EXISTS": 1,
    "FAIL_TOOL": 1,
    "FAIL_CLEANUP": 1,
    "FAIL_WRITE": 1,
    "FAIL_GENERIC": 1,
    "FAIL_UNHANDLED": 1,
    "FAIL_INTERRUPTED": 130,
}

RED = "\033[0;31m"
GREEN = "\033[0;32m"
YELLOW = "\033[0;33m"
CLR = "\033[0m"

CLI_START_MONO = time.perf_counter()


def _supports_color(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM", "dumb") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _paint(stream, color: str, text: str) -> str:
    return f"{color}{text}{CLR}" if _supports_color(stream) else text


def _record_result(kind: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"result": kind, "ts": int(time.time())}
    if extra:
        payload.update(extra)
    payload["timing_total_ms"] = int(max(0.0, (time.perf_counter() - CLI_START_MONO) * 1000))
    path = resolve_log_path()
    if path:
        append_jsonl(path, payload)
    return payload


def _emit_result(kind: str, message: str, extra: Optional[Dict[str, Any]] = None) -> NoReturn:
    _record_result(kind, dict(extra or {}, message=message))
    if kind.endswith("_OK"):
        print(_paint(sys.stdout, GREEN, message), flush=True)
    else:
        print(_paint(sys.stderr, RED, f"Error: {message}"), file=sys.stderr, flush=True)
    raise SystemExit(RESULT_CODES.get(kind, 1))


def _warn(message: str) -> None:
    print(_paint(sys.stderr, YELLOW, f"Warning: {message}"), file=sys.stderr, flush=True)


def _raise_interrupted(signum, _frame):
    raise InterruptedRun(f"interrupted by {signal.Signals(signum).name}")


def _install_signal_handlers() -> None:
    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _raise_interrupted)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sbmedium",
        description="Bundle, sign and register the kernel of an Arch Linux install medium for Secure Boot.",
    )
    parser.add_argument("device", nargs="?", help="block device of the install medium, e.g. /dev/sdb")
    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    args = build_parser().parse_args(argv)
    layout = layout_from_env()
    trace("cli.args", device=args.device, mount_point=layout.mount_point, staging=layout.staging_path)
    _install_signal_handlers()

    workflow = Workflow(args.device, layout)
    try:
        workflow.run()
    except ProvisionError as exc:
        if workflow.teardown_error:
            _warn(workflow.teardown_error)
        _emit_result(
            exc.kind,
            str(exc),
            extra={"device": args.device, "stage": workflow.stage.value, "state": exc.state},
        )
    except KeyboardInterrupt:
        if workflow.teardown_error:
            _warn(workflow.teardown_error)
        _emit_result("FAIL_INTERRUPTED", "interrupted by SIGINT", extra={"device": args.device})
    except Exception as exc:  # noqa: BLE001
        if workflow.teardown_error:
            _warn(workflow.teardown_error)
        _emit_result("FAIL_UNHANDLED", str(exc) or type(exc).__name__, extra={"device": args.device})

    _emit_result(
        "DONE_OK",
        f"Done: {args.device} is prepared for Secure Boot",
        extra={"device": args.device},
    )


if __name__ == "__main__":
    main()
