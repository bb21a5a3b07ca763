from __future__ import annotations

from unittest.mock import patch
import subprocess
import sys
import unittest

from procspawn.executor import RecordingExecutor, SubprocessExecutor


class SubprocessExecutorTests(unittest.TestCase):
    def test_captures_streams_as_bytes(self) -> None:
        result = SubprocessExecutor().execute(
            [sys.executable, "-c", "import sys; sys.stdout.write('o'); sys.stderr.write('e'); sys.exit(2)"]
        )
        self.assertEqual(result.returncode, 2)
        self.assertEqual(result.stdout, b"o")
        self.assertEqual(result.stderr, b"e")

    @patch("procspawn.executor.subprocess.run")
    def test_never_uses_a_shell(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(["a"], 0, b"", b"")

        SubprocessExecutor().execute(["a", "b c"], cwd="/w", env={"K": "V"})

        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], ["a", "b c"])
        self.assertFalse(kwargs["shell"])
        self.assertEqual(kwargs["cwd"], "/w")
        self.assertEqual(kwargs["env"], {"K": "V"})
        self.assertIs(kwargs["stdin"], subprocess.DEVNULL)
        self.assertNotIn("input", kwargs)

    @patch("procspawn.executor.subprocess.run")
    def test_stdin_payload_is_piped(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(["a"], 0, b"", b"")

        SubprocessExecutor().execute(["a"], stdin=b"{}", timeout=3)

        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs["input"], b"{}")
        self.assertEqual(kwargs["timeout"], 3)
        self.assertNotIn("stdin", kwargs)

    def test_missing_executable_raises(self) -> None:
        with self.assertRaises(OSError):
            SubprocessExecutor().execute(["procspawn-no-such-command-xyz"])


class RecordingExecutorTests(unittest.TestCase):
    def test_records_invocations(self) -> None:
        executor = RecordingExecutor(stdout=b"[]")
        result = executor.execute(["tool", "x y"], cwd="/tmp", env={"A": "1"}, stdin=b'{"a":1}')

        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout, b"[]")
        record = next(iter(executor.iter_invocations()))
        self.assertEqual(record.command, ["tool", "x y"])
        self.assertEqual(record.env, {"A": "1"})
        self.assertEqual(
            list(executor.iter_formatted()),
            ["[dry-run] (cwd=/tmp) tool 'x y' <<< {\"a\":1}"],
        )


if __name__ == "__main__":
    unittest.main()
