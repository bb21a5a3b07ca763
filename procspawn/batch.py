"""Ordered batch execution with per-item error isolation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Union

from .context import Console
from .interpreter import ExecutionError, Failure, FailureKind, ResultInterpreter, Success
from .invocation import RunnerConfig, build_invocation


ConfigResolver = Callable[[int, Any], RunnerConfig]
ConfigSource = Union[RunnerConfig, ConfigResolver]


@dataclass
class BatchItem:
    """One unit of a batch: an optional payload and, on recorded failure, its error."""

    payload: Any = None
    error: ExecutionError | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"json": self.payload}
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


class CommandRunner:
    """Builds and runs one invocation per item."""

    def __init__(
        self,
        interpreter: ResultInterpreter | None = None,
        *,
        base_env: Mapping[str, str] | None = None,
        console: Console | None = None,
    ) -> None:
        self.interpreter = interpreter or ResultInterpreter()
        self.base_env = base_env
        self.console = console or Console()

    def run_item(self, config: RunnerConfig, payload: Any = None) -> Any:
        """Return the decoded result for ``payload`` or raise :class:`ExecutionError`."""

        invocation = build_invocation(config, payload, base_env=self.base_env)
        self.console.debug(
            f"Running {self.interpreter.executor.format_command(invocation.argv)}"
            + (f" (cwd: {invocation.working_dir})" if invocation.working_dir else "")
        )
        outcome = self.interpreter.run(invocation, config.stdout_format, timeout=config.timeout)
        if isinstance(outcome, Success):
            return outcome.data
        raise ExecutionError(outcome)


class BatchDriver:
    """Runs a batch strictly in order, halting or continuing on failures."""

    def __init__(
        self,
        config: ConfigSource,
        *,
        runner: CommandRunner | None = None,
        continue_on_error: bool = False,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.console = console or Console()
        self.runner = runner or CommandRunner(console=self.console)
        self.continue_on_error = continue_on_error

    def resolve_config(self, index: int, payload: Any) -> RunnerConfig:
        if isinstance(self.config, RunnerConfig):
            return self.config
        return self.config(index, payload)

    def _process(self, index: int, payload: Any) -> Any:
        try:
            config = self.resolve_config(index, payload)
            return self.runner.run_item(config, payload)
        except ExecutionError:
            raise
        except Exception as exc:
            raise ExecutionError(
                Failure(kind=FailureKind.SPAWN_FAILURE, message=f"Could not prepare item: {exc}"),
                item_index=index,
            ) from exc

    def run(self, items: Iterable[BatchItem | Any]) -> List[BatchItem]:
        batch = [item if isinstance(item, BatchItem) else BatchItem(payload=item) for item in items]
        results: List[BatchItem] = []
        failures = 0

        for index, item in enumerate(batch):
            try:
                data = self._process(index, item.payload)
            except ExecutionError as exc:
                exc.annotate(index)
                self.console.error(f"Item {index} failed ({exc.kind.value}): {exc.failure.message}")
                if not self.continue_on_error:
                    raise
                failures += 1
                results.append(BatchItem(payload=item.payload, error=exc))
                continue
            results.append(BatchItem(payload=data))

        self.console.info(f"Processed {len(results)} item(s), {failures} failed")
        return results


__all__ = [
    "BatchDriver",
    "BatchItem",
    "CommandRunner",
    "ConfigResolver",
    "ConfigSource",
]
