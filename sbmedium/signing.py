"""Secure Boot signing through ``sbctl sign``."""
from subprocess import CalledProcessError

from .errors import ToolError
from .executil import describe_failure, run, trace


def sign(path: str, sbctl: str = "sbctl") -> None:
    try:
        run([sbctl, "sign", path], check=True)
    except CalledProcessError as exc:
        raise ToolError(
            f"sbctl sign {path} failed: {describe_failure(exc)}",
            state={"path": path, "rc": exc.returncode},
        ) from exc
    trace("signing.signed", path=path)
