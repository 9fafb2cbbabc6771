"""Tests for settings loading and cloud endpoints."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import sys

# Allow importing m365_mcp when running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
os.environ.setdefault("M365_MCP_HOME", tempfile.mkdtemp(prefix="m365-mcp-test-"))

from m365_mcp.cloud import (
    CloudType,
    get_authority,
    get_graph_endpoint,
    get_graph_scopes,
    parse_cloud_type,
)
from m365_mcp.config import Settings


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertIsNone(settings.client_id)
        self.assertEqual(settings.tenant_id, "common")
        self.assertIs(settings.cloud_type, CloudType.GLOBAL)

    def test_reads_environment(self):
        env = {
            "M365_CLIENT_ID": " abc ",
            "M365_TENANT_ID": "contoso.onmicrosoft.com",
            "M365_CLIENT_SECRET": "s3cret",
            "M365_CLOUD_TYPE": "China",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.client_id, "abc")
        self.assertEqual(settings.tenant_id, "contoso.onmicrosoft.com")
        self.assertEqual(settings.client_secret, "s3cret")
        self.assertIs(settings.cloud_type, CloudType.CHINA)

    def test_blank_values_are_unset(self):
        with mock.patch.dict(os.environ, {"M365_ACCESS_TOKEN": "  ", "M365_TENANT_ID": ""}, clear=True):
            settings = Settings.from_env()
        self.assertIsNone(settings.access_token)
        self.assertEqual(settings.tenant_id, "common")

    def test_unknown_cloud_rejected(self):
        with mock.patch.dict(os.environ, {"M365_CLOUD_TYPE": "usgov"}, clear=True):
            with self.assertRaises(ValueError) as ctx:
                Settings.from_env()
        self.assertIn("global", str(ctx.exception))

    def test_repr_masks_secrets(self):
        settings = Settings(client_id="abc", client_secret="s3cret", access_token="tok123")
        self.assertNotIn("s3cret", repr(settings))
        self.assertNotIn("tok123", str(settings))
        self.assertIn("abc", repr(settings))

    def test_settings_are_frozen(self):
        settings = Settings(client_id="abc")
        with self.assertRaises(Exception):
            settings.client_id = "other"


class TestCloud(unittest.TestCase):
    def test_global_endpoints(self):
        self.assertEqual(get_authority(CloudType.GLOBAL, "common"), "https://login.microsoftonline.com/common")
        self.assertEqual(get_graph_endpoint(CloudType.GLOBAL), "https://graph.microsoft.com/v1.0")
        self.assertEqual(get_graph_scopes(CloudType.GLOBAL), ["https://graph.microsoft.com/.default"])

    def test_china_endpoints(self):
        self.assertEqual(get_authority(CloudType.CHINA, "t1"), "https://login.chinacloudapi.cn/t1")
        self.assertEqual(get_graph_endpoint(CloudType.CHINA), "https://microsoftgraph.chinacloudapi.cn/v1.0")
        self.assertEqual(get_graph_scopes(CloudType.CHINA), ["https://microsoftgraph.chinacloudapi.cn/.default"])

    def test_scopes_are_fresh_lists(self):
        scopes = get_graph_scopes(CloudType.GLOBAL)
        scopes.append("mutated")
        self.assertEqual(len(get_graph_scopes(CloudType.GLOBAL)), 1)

    def test_parse_cloud_type(self):
        self.assertIs(parse_cloud_type(" GLOBAL "), CloudType.GLOBAL)
        with self.assertRaises(ValueError):
            parse_cloud_type("moon")


if __name__ == "__main__":
    unittest.main()
