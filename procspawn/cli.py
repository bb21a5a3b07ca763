"""Command line interface for procspawn."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace, REMAINDER
from pathlib import Path
from typing import Any, Dict, Iterable, List, TextIO
import json
import sys

from .batch import BatchDriver, CommandRunner
from .config_loader import (
    ConfigError,
    load_config_file,
    merge_mappings,
    normalize_env,
    normalize_string_list,
)
from .context import Console
from .executor import RecordingExecutor, SubprocessExecutor
from .interpreter import ExecutionError, ResultInterpreter
from .template import ParameterTemplate, TemplateError


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(
        prog="procspawn",
        description="Run a command once per JSON item, feeding the item on stdin",
    )
    parser.add_argument("--config", "-c", type=Path, help="Runner configuration file (toml, json or yaml)")
    parser.add_argument("--input", "-i", type=Path, help="Batch input file (default: stdin)")
    parser.add_argument("--jsonl", action="store_true", help="Read input as JSON Lines instead of a JSON array")
    parser.add_argument("--format", dest="stdout_format", choices=["json", "plain"], help="How to decode stdout")
    parser.add_argument("--arg", dest="extra_args", action="append", default=[], metavar="ARG", help="Append an argument")
    parser.add_argument("--env", dest="env", action="append", default=[], metavar="NAME=VALUE", help="Environment override")
    parser.add_argument("--cwd", dest="working_dir", help="Working directory for the command")
    parser.add_argument("--timeout", type=float, help="Kill the command after this many seconds")
    parser.add_argument("--continue-on-error", action="store_true", help="Record failures and keep going")
    parser.add_argument("--dry-run", "-n", action="store_true", help="Print invocations without running them")
    parser.add_argument(
        "--log",
        "-l",
        choices=list(Console.LEVELS),
        default="none",
        help="Set log level (default: none)",
    )
    parser.add_argument("command", nargs="?", help="Command to execute")
    parser.add_argument("args", nargs=REMAINDER, help="Arguments passed to the command")
    return parser.parse_args(list(argv))


def _split_env(values: Iterable[str]) -> List[List[str]]:
    pairs: List[List[str]] = []
    for raw in values:
        name, sep, value = raw.partition("=")
        if not sep or not name:
            raise ConfigError(f"Invalid --env value '{raw}', expected NAME=VALUE")
        pairs.append([name, value])
    return pairs


def build_raw_config(args: Namespace) -> Dict[str, Any]:
    """Combine the configuration file with command line options."""

    data: Dict[str, Any] = dict(load_config_file(args.config)) if args.config else {}
    overlay: Dict[str, Any] = {
        "command": args.command,
        "working_dir": args.working_dir,
        "stdout_format": args.stdout_format,
        "timeout": args.timeout,
    }
    if args.command:
        overlay["args"] = list(args.args)
    data = merge_mappings(data, overlay)

    if args.extra_args:
        data["args"] = [*normalize_string_list(data.get("args"), field_name="args"), *args.extra_args]
    if args.env:
        data["env"] = [*normalize_env(data.get("env")), *_split_env(args.env)]
    return data


def read_batch(stream: TextIO, *, jsonl: bool = False) -> List[Any]:
    text = stream.read()
    if jsonl:
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    if not text.strip():
        return [None]
    data = json.loads(text)
    if not isinstance(data, list):
        return [data]
    return data


def _load_batch(args: Namespace) -> List[Any]:
    if args.input:
        with args.input.open("r", encoding="utf-8") as handle:
            return read_batch(handle, jsonl=args.jsonl)
    if sys.stdin is None or sys.stdin.isatty():
        return [None]
    return read_batch(sys.stdin, jsonl=args.jsonl)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = Console(args.log, dry_run=args.dry_run)

    try:
        template = ParameterTemplate(build_raw_config(args))
        items = _load_batch(args)
    except (ConfigError, TemplateError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    executor = RecordingExecutor() if args.dry_run else SubprocessExecutor()
    runner = CommandRunner(ResultInterpreter(executor), console=console)
    config = template.render(0, None) if template.is_static else template
    driver = BatchDriver(config, runner=runner, continue_on_error=args.continue_on_error, console=console)

    try:
        results = driver.run(items)
    except ExecutionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if isinstance(executor, RecordingExecutor):
            for line in executor.iter_formatted():
                console.dry(line)

    json.dump([item.to_dict() for item in results], sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
