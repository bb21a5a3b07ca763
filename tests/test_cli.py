from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch
import io
import json
import sys
import tempfile
import unittest

from procspawn.cli import main, read_batch


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write_config(self, script: str, **extra) -> Path:
        path = self.root / "runner.json"
        path.write_text(json.dumps({"command": sys.executable, "args": ["-c", script], **extra}))
        return path

    def _write_input(self, items) -> Path:
        path = self.root / "items.json"
        path.write_text(json.dumps(items))
        return path

    def _main(self, argv):
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_runs_each_item(self) -> None:
        config = self._write_config("import json, sys; d = json.load(sys.stdin); print(json.dumps({'double': d['n'] * 2}))")
        items = self._write_input([{"n": 1}, {"n": 5}])

        code, out, _ = self._main(["--config", str(config), "--input", str(items)])

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out), [{"json": {"double": 2}}, {"json": {"double": 10}}])

    def test_abort_returns_one(self) -> None:
        config = self._write_config("import sys; sys.exit(4)")
        items = self._write_input([{}, {}])

        code, out, err = self._main(["-c", str(config), "-i", str(items)])

        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("(item 0)", err)

    def test_continue_on_error(self) -> None:
        config = self._write_config("import sys; sys.stderr.write('nope'); sys.exit(4)")
        items = self._write_input([{"a": 1}])

        code, out, _ = self._main(["-c", str(config), "-i", str(items), "--continue-on-error"])

        self.assertEqual(code, 0)
        result = json.loads(out)
        self.assertEqual(result[0]["json"], {"a": 1})
        self.assertEqual(result[0]["error"]["kind"], "non_zero_exit")
        self.assertEqual(result[0]["error"]["stderr"], "nope")

    def test_command_line_overrides(self) -> None:
        config = self._write_config("import os; print(os.environ['GREETING'])", stdout_format="json")
        items = self._write_input([None])

        code, out, _ = self._main(
            ["-c", str(config), "-i", str(items), "--format", "plain", "--env", "GREETING=hello"]
        )

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out), [{"json": {"stdout": "hello\n"}}])

    def test_templates_use_item_payload(self) -> None:
        config = self._write_config("import sys; print(sys.argv[1])", stdout_format="plain")
        data = json.loads(config.read_text())
        data["args"].append("{{json.name}}")
        config.write_text(json.dumps(data))
        items = self._write_input([{"name": "first"}, {"name": "second"}])

        code, out, _ = self._main(["-c", str(config), "-i", str(items)])

        self.assertEqual(code, 0)
        self.assertEqual([item["json"]["stdout"] for item in json.loads(out)], ["first\n", "second\n"])

    def test_dry_run_does_not_spawn(self) -> None:
        items = self._write_input([{"x": 1}])

        with patch("procspawn.executor.subprocess.run") as mock_run:
            code, out, err = self._main(["--dry-run", "-i", str(items), "echo", "hello world"])

        self.assertEqual(code, 0)
        mock_run.assert_not_called()
        self.assertEqual(json.loads(out), [{"json": {}}])
        self.assertIn("[DRY] [dry-run] echo 'hello world' <<< {\"x\":1}", err)

    def test_missing_command_is_usage_error(self) -> None:
        items = self._write_input([])
        code, _, err = self._main(["-i", str(items)])
        self.assertEqual(code, 2)
        self.assertIn("command must be a non-empty string", err)

    def test_invalid_env_option(self) -> None:
        code, _, err = self._main(["--env", "NOVALUE", "true"])
        self.assertEqual(code, 2)
        self.assertIn("NAME=VALUE", err)

    def test_reads_stdin(self) -> None:
        config = self._write_config("import sys; sys.stdout.write(sys.stdin.read())")
        with patch("sys.stdin", io.StringIO('[{"k": 1}]')):
            code, out, _ = self._main(["-c", str(config)])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out), [{"json": {"k": 1}}])


class ReadBatchTests(unittest.TestCase):
    def test_json_array(self) -> None:
        self.assertEqual(read_batch(io.StringIO("[1, {\"a\": 2}]")), [1, {"a": 2}])

    def test_single_value_and_empty(self) -> None:
        self.assertEqual(read_batch(io.StringIO('{"a": 1}')), [{"a": 1}])
        self.assertEqual(read_batch(io.StringIO("  ")), [None])

    def test_json_lines(self) -> None:
        self.assertEqual(read_batch(io.StringIO('{"a": 1}\n\n[2]\n'), jsonl=True), [{"a": 1}, [2]])


if __name__ == "__main__":
    unittest.main()
