"""Run invocations and classify their outcome."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union
import json
import subprocess

from .executor import ProcessExecutor, ProcessResult, SubprocessExecutor
from .invocation import InvocationSpec, StdoutFormat


class FailureKind(Enum):
    SPAWN_FAILURE = "spawn_failure"
    NON_ZERO_EXIT = "non_zero_exit"
    DECODE_FAILURE = "decode_failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Success:
    data: Any


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    stdout: bytes = b""
    stderr: bytes = b""
    returncode: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "stdout": _decode_text(self.stdout),
            "stderr": _decode_text(self.stderr),
            "returncode": self.returncode,
        }


ExecutionOutcome = Union[Success, Failure]


class ExecutionError(RuntimeError):
    """Raised when a batch item fails and the batch is not allowed to continue."""

    def __init__(self, failure: Failure, *, item_index: int | None = None):
        super().__init__(failure.message)
        self.failure = failure
        self.item_index = item_index

    @property
    def kind(self) -> FailureKind:
        return self.failure.kind

    def annotate(self, item_index: int) -> "ExecutionError":
        """Attach ``item_index`` unless a position is already recorded."""

        if self.item_index is None:
            self.item_index = item_index
        return self

    def to_dict(self) -> dict[str, Any]:
        data = self.failure.to_dict()
        data["item_index"] = self.item_index
        return data

    def __str__(self) -> str:
        message = super().__str__()
        if self.item_index is None:
            return message
        return f"{message} (item {self.item_index})"


def _decode_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def decode_stdout(raw: bytes, stdout_format: StdoutFormat) -> Any:
    """Turn raw stdout into a structured value.

    Raises :class:`ValueError` when ``stdout_format`` is JSON and the
    trimmed text does not parse.
    """

    text = _decode_text(raw)
    if stdout_format is StdoutFormat.PLAIN:
        return {"stdout": text}
    text = text.strip()
    if not text:
        return {}
    return json.loads(text)


def classify(result: ProcessResult, stdout_format: StdoutFormat) -> ExecutionOutcome:
    """Classify a finished process according to its exit status and stdout."""

    if result.returncode is None or result.returncode < 0:
        return Failure(
            kind=FailureKind.SPAWN_FAILURE,
            message="Failed to exec command",
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
        )
    if result.returncode != 0:
        return Failure(
            kind=FailureKind.NON_ZERO_EXIT,
            message=f"[stdout] {_decode_text(result.stdout)} \n[stderr] {_decode_text(result.stderr)}",
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
        )
    try:
        data = decode_stdout(result.stdout, stdout_format)
    except (ValueError, RecursionError) as exc:
        return Failure(
            kind=FailureKind.DECODE_FAILURE,
            message=f"Could not decode stdout as JSON: {exc}",
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
        )
    return Success(data)


class ResultInterpreter:
    """Executes an :class:`InvocationSpec` and interprets what happened."""

    def __init__(self, executor: ProcessExecutor | None = None) -> None:
        self.executor = executor or SubprocessExecutor()

    def run(
        self,
        invocation: InvocationSpec,
        stdout_format: StdoutFormat = StdoutFormat.JSON,
        *,
        timeout: float | None = None,
    ) -> ExecutionOutcome:
        if not invocation.command:
            return Failure(kind=FailureKind.SPAWN_FAILURE, message="Failed to exec command: empty command")
        try:
            result = self.executor.execute(
                invocation.argv,
                cwd=invocation.working_dir,
                env=invocation.env,
                stdin=invocation.stdin,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            return Failure(
                kind=FailureKind.TIMEOUT,
                message=f"Command timed out after {exc.timeout} seconds",
                stdout=exc.stdout or b"",
                stderr=exc.stderr or b"",
            )
        except (OSError, ValueError) as exc:
            # ValueError: NUL bytes in argv or "=" in an env name.
            return Failure(kind=FailureKind.SPAWN_FAILURE, message=f"Failed to exec command: {exc}")
        return classify(result, stdout_format)


__all__ = [
    "ExecutionError",
    "ExecutionOutcome",
    "Failure",
    "FailureKind",
    "ResultInterpreter",
    "Success",
    "classify",
    "decode_stdout",
]
