from pathlib import Path
import os
import subprocess
import sys
import unittest
from unittest.mock import AsyncMock, patch

SERVER_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVER_DIR))

os.environ["MOTD_TOKEN"] = "test-token"

from fastapi.testclient import TestClient

import main
import status_client
from motd_parser import HARD_MAX_DEPTH
from status_client import ServerStatus, StatusAddressError, StatusConnectError

AUTH = {"Authorization": "Bearer test-token"}


class RenderEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(main.app)

    def test_health_needs_no_token(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")

    def test_rejects_wrong_token(self):
        resp = self.client.post("/render", json={"text": "x"}, headers={"Authorization": "Bearer nope"})
        self.assertEqual(resp.status_code, 401)

    def test_renders_html(self):
        resp = self.client.post("/render", json={"text": "§aHi§r!"}, headers=AUTH)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            "html": '<span><span style="color: #55FF55">Hi</span>!</span>',
            "warnings": [],
        })

    def test_renders_runs_with_warnings(self):
        resp = self.client.post("/render", json={"text": "§zx", "format": "runs"}, headers=AUTH)
        self.assertEqual(resp.json(), {
            "runs": [[{"t": "§zx"}]],
            "warnings": [{"position": 0, "code": "z"}],
        })

    def test_excessive_nesting_is_422(self):
        resp = self.client.post("/render", json={"text": "§a" * (main.MAX_DEPTH + 1)}, headers=AUTH)
        self.assertEqual(resp.status_code, 422)

    def test_rejects_unknown_format(self):
        resp = self.client.post("/render", json={"text": "x", "format": "svg"}, headers=AUTH)
        self.assertEqual(resp.status_code, 422)


class StatusEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(main.app)
        main._status_limiter._timestamps.clear()

    def test_status_renders_description(self):
        status = ServerStatus(
            version_name="1.20.4",
            protocol=765,
            players_online=1,
            players_max=10,
            description="§6Gold",
            raw={},
        )
        with patch.object(main, "query_status", AsyncMock(return_value=status)) as query_mock:
            resp = self.client.get("/status", params={"address": "mc.example.net:25570"}, headers=AUTH)
        query_mock.assert_awaited_once_with("mc.example.net", 25570, timeout=main.STATUS_TIMEOUT)
        body = resp.json()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(body["players"], {"online": 1, "max": 10})
        self.assertEqual(body["html"], '<span><span style="color: #FFAA00">Gold</span></span>')
        self.assertEqual(body["runs"], [[{"t": "Gold", "fg": "#FFAA00"}]])

    def test_bad_address_is_400(self):
        resp = self.client.get("/status", params={"address": "host:nope"}, headers=AUTH)
        self.assertEqual(resp.status_code, 400)

    def test_unreachable_server_is_502(self):
        with patch.object(status_client, "resolve_srv", AsyncMock(return_value=None)), \
                patch.object(main, "query_status", AsyncMock(side_effect=StatusConnectError("refused"))):
            resp = self.client.get("/status", params={"address": "mc.example.net"}, headers=AUTH)
        self.assertEqual(resp.status_code, 502)

    def test_unresolvable_host_is_400(self):
        with patch.object(main, "query_status", AsyncMock(side_effect=StatusAddressError("no such host"))):
            resp = self.client.get("/status", params={"address": "no-such-host.invalid:25565"}, headers=AUTH)
        self.assertEqual(resp.status_code, 400)

    def test_bare_host_resolves_srv(self):
        status = ServerStatus("1.20.4", 765, 0, 5, "hi", {})
        with patch.object(status_client, "resolve_srv", AsyncMock(return_value=("play.example.net", 25600))), \
                patch.object(main, "query_status", AsyncMock(return_value=status)) as query_mock:
            resp = self.client.get("/status", params={"address": "example.net"}, headers=AUTH)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["port"], 25600)
        query_mock.assert_awaited_once_with("play.example.net", 25600, timeout=main.STATUS_TIMEOUT)


class ConfigTests(unittest.TestCase):
    def test_max_depth_above_ceiling_refuses_to_start(self):
        env = dict(os.environ, MOTD_TOKEN="test-token", MOTD_MAX_DEPTH=str(HARD_MAX_DEPTH + 1))
        proc = subprocess.run(
            [sys.executable, "-c", "import main"],
            cwd=SERVER_DIR,
            env=env,
            capture_output=True,
            text=True,
        )
        self.assertEqual(proc.returncode, 1)
        self.assertIn("MOTD_MAX_DEPTH", proc.stderr)


if __name__ == "__main__":
    unittest.main()
