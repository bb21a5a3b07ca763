"""
procspawn - run a command per batch item with JSON on stdin
"""

from .batch import BatchDriver, BatchItem, CommandRunner
from .config_loader import ConfigError, load_runner_config, parse_runner_config
from .context import Console
from .executor import ProcessExecutor, ProcessResult, RecordingExecutor, SubprocessExecutor
from .interpreter import (
    ExecutionError,
    ExecutionOutcome,
    Failure,
    FailureKind,
    ResultInterpreter,
    Success,
)
from .invocation import InvocationSpec, RunnerConfig, StdoutFormat, build_invocation
from .template import ParameterTemplate, TemplateError
