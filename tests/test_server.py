"""Tests for Graph client construction, server context and tool wiring."""

import asyncio
import json
import os
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

import sys

# Allow importing m365_mcp when running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
os.environ.setdefault("M365_MCP_HOME", tempfile.mkdtemp(prefix="m365-mcp-test-"))

from msgraph import GraphServiceClient
from msgraph.generated.models.o_data_errors.main_error import MainError
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

from m365_mcp.auth import AuthConfigurationError, NoCachedAccountError, create_graph_client
from m365_mcp.cloud import CloudType
from m365_mcp.config import Settings
from m365_mcp.context import ServerContext
from m365_mcp.server import build_server
from m365_mcp.tools.users import get_current_user


class TestCreateGraphClient(unittest.TestCase):
    def test_static_token_client_targets_global_graph(self):
        client = create_graph_client(Settings(access_token="tok123"))
        self.assertIsInstance(client, GraphServiceClient)
        self.assertEqual(client.request_adapter.base_url, "https://graph.microsoft.com/v1.0")

    def test_china_cloud_endpoint(self):
        client = create_graph_client(Settings(access_token="tok123", cloud_type=CloudType.CHINA))
        self.assertEqual(client.request_adapter.base_url, "https://microsoftgraph.chinacloudapi.cn/v1.0")

    def test_nothing_configured(self):
        with self.assertRaises(AuthConfigurationError):
            create_graph_client(Settings())


class TestServerContext(unittest.TestCase):
    def test_graph_client_is_shared(self):
        context = ServerContext(Settings(access_token="tok123"))
        self.assertIs(context.graph_client(), context.graph_client())

    def test_auth_requires_client_id(self):
        context = ServerContext(Settings(access_token="tok123"))
        with self.assertRaises(AuthConfigurationError):
            context.auth
        context.close()


class TestToolRegistration(unittest.TestCase):
    def test_all_tools_registered(self):
        mcp = build_server(ServerContext(Settings(access_token="tok123")))
        names = {tool.name for tool in asyncio.run(mcp.list_tools())}
        self.assertEqual(
            names,
            {"login", "login-status", "logout", "get-version", "get-current-user"},
        )


def fake_context(get):
    """Context stand-in whose Graph client answers ``me.get()`` with ``get``."""
    client = SimpleNamespace(me=SimpleNamespace(get=get))
    return SimpleNamespace(graph_client=lambda: client)


class TestGetCurrentUser(unittest.TestCase):
    def test_returns_profile(self):
        async def get():
            return {"id": "1", "displayName": "Ada", "@odata.context": "x"}

        rendered = json.loads(asyncio.run(get_current_user(fake_context(get))))
        self.assertEqual(rendered, {"id": "1", "displayName": "Ada"})

    def test_auth_error_becomes_message(self):
        async def get():
            raise NoCachedAccountError()

        rendered = json.loads(asyncio.run(get_current_user(fake_context(get))))
        self.assertTrue(rendered["error"])
        self.assertIn("login", rendered["message"])

    def test_unconfigured_context(self):
        def graph_client():
            raise AuthConfigurationError("No authentication method configured.")

        context = SimpleNamespace(graph_client=graph_client)
        rendered = json.loads(asyncio.run(get_current_user(context)))
        self.assertEqual(rendered["message"], "No authentication method configured.")

    def test_graph_error(self):
        async def get():
            main = MainError()
            main.code = "Authorization_RequestDenied"
            main.message = "Insufficient privileges"
            error = ODataError()
            error.error = main
            error.response_status_code = 403
            raise error

        rendered = json.loads(asyncio.run(get_current_user(fake_context(get))))
        self.assertEqual(rendered["statusCode"], 403)
        self.assertEqual(rendered["code"], "Authorization_RequestDenied")


if __name__ == "__main__":
    unittest.main()
