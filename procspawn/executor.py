"""Process executors used by the result interpreter."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence
import shlex
import subprocess


@dataclass
class ProcessResult:
    """Represents the outcome of a finished child process."""

    command: Sequence[str]
    returncode: int | None
    stdout: bytes
    stderr: bytes


class ProcessExecutor:
    """Abstract process executor interface."""

    def execute(
        self,
        command: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessExecutor(ProcessExecutor):
    """Executor that runs one blocking child process via :mod:`subprocess`.

    Spawn errors (:class:`OSError`) and :class:`subprocess.TimeoutExpired`
    propagate to the caller unchanged.
    """

    def execute(
        self,
        command: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        kwargs: Dict[str, object] = {}
        if stdin is None:
            kwargs["stdin"] = subprocess.DEVNULL
        else:
            kwargs["input"] = stdin

        process = subprocess.run(
            list(command),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=True,
            shell=False,
            check=False,
            timeout=timeout,
            **kwargs,
        )
        return ProcessResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout or b"",
            stderr=process.stderr or b"",
        )


@dataclass(slots=True)
class RecordedInvocation:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    stdin: bytes | None


class RecordingExecutor(ProcessExecutor):
    """Executor that records invocations instead of spawning processes."""

    def __init__(self, *, stdout: bytes = b"") -> None:
        self.invocations: List[RecordedInvocation] = []
        self.stdout = stdout

    def execute(
        self,
        command: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        stdin: bytes | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        self.invocations.append(
            RecordedInvocation(
                command=list(command),
                cwd=cwd,
                env=dict(env) if env else {},
                stdin=stdin,
            )
        )
        return ProcessResult(command=command, returncode=0, stdout=self.stdout, stderr=b"")

    def iter_invocations(self) -> Iterable[RecordedInvocation]:
        return iter(self.invocations)

    def iter_formatted(self) -> Iterable[str]:
        for record in self.invocations:
            parts: List[str] = ["[dry-run]"]
            if record.cwd:
                parts.append(f"(cwd={record.cwd})")
            parts.append(self.format_command(record.command))
            if record.stdin is not None:
                parts.append(f"<<< {record.stdin.decode('utf-8', errors='replace')}")
            yield " ".join(parts)


__all__ = [
    "ProcessExecutor",
    "ProcessResult",
    "RecordedInvocation",
    "RecordingExecutor",
    "SubprocessExecutor",
]
