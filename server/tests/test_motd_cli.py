from pathlib import Path
import contextlib
import io
import sys
import unittest
from unittest.mock import AsyncMock, patch

SERVER_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVER_DIR))

import motd_cli
import status_client
from motd_parser import HARD_MAX_DEPTH
from status_client import ServerStatus, StatusAddressError, StatusConnectError


def _run(argv):
    out, err = io.StringIO(), io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = motd_cli.main(argv)
    return code, out.getvalue(), err.getvalue()


class MotdCliTests(unittest.TestCase):
    def test_renders_text_as_html(self):
        code, out, _ = _run(["--text", "§aHi"])
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), '<span><span style="color: #55FF55">Hi</span></span>')

    def test_plain_format(self):
        code, out, _ = _run(["--text", "§l§cA§rB", "--format", "plain"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "AB\n")

    def test_strict_unknown_code_fails(self):
        code, _, err = _run(["--text", "§zA", "--strict"])
        self.assertEqual(code, motd_cli.ERROR_CODE_GENERAL)
        self.assertIn("could not be parsed", err)

    def test_bad_address(self):
        code, _, _ = _run(["host:port"])
        self.assertEqual(code, motd_cli.ERROR_CODE_ADDRESS)

    def test_connect_error(self):
        with patch.object(status_client, "resolve_srv", AsyncMock(return_value=None)), \
                patch.object(motd_cli, "query_status", AsyncMock(side_effect=StatusConnectError("refused"))):
            code, _, err = _run(["mc.example.net"])
        self.assertEqual(code, motd_cli.ERROR_CODE_STREAM)
        self.assertIn("Stream connection error", err)

    def test_unresolvable_host_is_address_error(self):
        with patch.object(motd_cli, "query_status", AsyncMock(side_effect=StatusAddressError("no such host"))):
            code, _, err = _run(["no-such-host.invalid:25565"])
        self.assertEqual(code, motd_cli.ERROR_CODE_ADDRESS)
        self.assertIn("no such host", err)

    def test_bare_host_uses_srv_target(self):
        status = ServerStatus("1.20.4", 765, 0, 20, "hi", {})
        with patch.object(status_client, "resolve_srv", AsyncMock(return_value=("play.example.net", 25600))), \
                patch.object(motd_cli, "query_status", AsyncMock(return_value=status)) as query_mock:
            code, _, _ = _run(["example.net", "--format", "plain"])
        self.assertEqual(code, 0)
        query_mock.assert_awaited_once_with("play.example.net", 25600, timeout=motd_cli.DEFAULT_TIMEOUT_SECONDS)

    def test_max_depth_above_ceiling_is_rejected(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                motd_cli.main(["--text", "§a" * 600, "--max-depth", "1000"])
        self.assertEqual(ctx.exception.code, 2)

    def test_negative_max_depth_is_rejected(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                motd_cli.main(["--text", "x", "--max-depth", "-1"])
        self.assertEqual(ctx.exception.code, 2)

    def test_deep_text_at_ceiling_exits_general(self):
        code, _, err = _run(["--text", "§a" * 600, "--max-depth", str(HARD_MAX_DEPTH)])
        self.assertEqual(code, motd_cli.ERROR_CODE_GENERAL)
        self.assertIn("nesting", err)

    def test_json_format_needs_address(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                motd_cli.main(["--text", "§aHi", "--format", "json"])
        self.assertEqual(ctx.exception.code, 2)

    def test_queries_and_renders_runs(self):
        status = ServerStatus("1.20.4", 765, 0, 20, "§eHey", {"description": "§eHey"})
        with patch.object(motd_cli, "query_status", AsyncMock(return_value=status)) as query_mock:
            code, out, _ = _run(["mc.example.net:25566", "--format", "runs", "--timeout", "2"])
        query_mock.assert_awaited_once_with("mc.example.net", 25566, timeout=2.0)
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), '[[{"t":"Hey","fg":"#FFFF55"}]]')


if __name__ == "__main__":
    unittest.main()
