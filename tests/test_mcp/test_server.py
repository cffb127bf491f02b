"""Tests for tool registration and routing in the MCP server.

Detailed handler behavior is tested in tests/test_mcp/tools/test_check.py;
this file only tests the server routing layer and global context.
"""

import asyncio

import pytest
from conftest import FakeContentSource, make_manifest_data, write_manifest

from upstream_sync.config import Config
from upstream_sync.mcp.server import (
    get_client,
    get_config,
    handle_call_tool,
    handle_list_tools,
    set_context,
)


class TestToolListing:
    def test_upstream_check_listed(self):
        tools = asyncio.run(handle_list_tools())
        assert [t.name for t in tools] == ["upstream_check"]


class TestContext:
    def teardown_method(self):
        set_context(None, None)

    def test_uninitialized_raises(self):
        set_context(None, None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_client()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_config()

    def test_set_and_get(self):
        client, config = FakeContentSource(), Config()
        set_context(client, config)
        assert get_client() is client
        assert get_config() is config


class TestCallRouting:
    def teardown_method(self):
        set_context(None, None)

    def test_unknown_tool(self):
        result = asyncio.run(handle_call_tool("wiki_get", {}))
        assert result.isError
        assert "Unknown tool: wiki_get" in result.content[0].text

    def test_routes_to_check(self, tmp_path):
        manifest = write_manifest(
            tmp_path / "sync-manifest.json", make_manifest_data()
        )
        set_context(FakeContentSource(), Config(manifest_path=str(manifest)))
        result = asyncio.run(handle_call_tool("upstream_check", {}))
        assert not result.isError
        assert result.structuredContent["statusName"] == "no_changes"
