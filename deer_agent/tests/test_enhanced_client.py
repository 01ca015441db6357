"""향상된 MCP 클라이언트 테스트

MultiServerMCPClient를 가짜 구현으로 바꿔 서버 연결 없이 도구 관리 로직을 검증합니다.
"""

import pytest

from deer_agent.adapters import enhanced_client
from deer_agent.adapters import EnhancedMCPClient
from deer_agent.config import DeerConfig, MCPServerConfig

from .conftest import python_repl, web_search


class FakeMultiServerMCPClient:
    """서버별로 고정된 도구를 돌려주는 MultiServerMCPClient 대역"""

    tools = {"search": [web_search], "python": [python_repl]}
    fail_on = None

    def __init__(self, connections):
        self.connections = connections

    async def get_tools(self, server_name=None):
        if server_name == self.fail_on:
            raise ConnectionError(f"{server_name} 연결 실패")
        return self.tools[server_name]


@pytest.fixture
def deer_config():
    return DeerConfig(servers={
        "search": MCPServerConfig(name="search", command="python", args=["search.py"]),
        "python": MCPServerConfig(name="python", command="python", args=["python.py"]),
    })


@pytest.fixture
def fake_mcp(monkeypatch):
    monkeypatch.setattr(enhanced_client, "MultiServerMCPClient", FakeMultiServerMCPClient)
    FakeMultiServerMCPClient.fail_on = None
    return FakeMultiServerMCPClient


class TestEnhancedMCPClient:
    """도구 로딩과 조회 테스트"""

    @pytest.mark.asyncio
    async def test_initialize_loads_tools_by_server(self, fake_mcp, deer_config):
        client = EnhancedMCPClient()
        await client.initialize(deer_config)

        assert client.get_server_names() == ["search", "python"]
        assert client.get_tool_names() == ["web_search", "python_repl"]
        assert [t.name for t in client.get_tools(server_prefix="py")] == ["python_repl"]
        assert client.get_tools_info()["search"][0]["name"] == "web_search"

    @pytest.mark.asyncio
    async def test_find_tool_by_suffix(self, fake_mcp, deer_config):
        client = EnhancedMCPClient()
        await client.initialize(deer_config)

        assert client.find_tool("search").name == "web_search"
        assert client.find_tool("browse") is None

    @pytest.mark.asyncio
    async def test_call_tool(self, fake_mcp, deer_config):
        client = EnhancedMCPClient()
        await client.initialize(deer_config)

        result = await client.call_tool("web_search", {"query": "리튬"}, thread_id="t1")

        assert "리튬" in result

    @pytest.mark.asyncio
    async def test_call_unknown_tool_raises(self, fake_mcp, deer_config):
        client = EnhancedMCPClient()
        await client.initialize(deer_config)

        with pytest.raises(ValueError, match="찾을 수 없습니다"):
            await client.call_tool("nope", {})

    @pytest.mark.asyncio
    async def test_initialize_failure_clears_state(self, fake_mcp, deer_config):
        fake_mcp.fail_on = "python"
        client = EnhancedMCPClient()

        with pytest.raises(ConnectionError):
            await client.initialize(deer_config)

        assert client.get_tools() == []
        assert client.get_server_names() == []

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, fake_mcp, deer_config):
        async with EnhancedMCPClient() as client:
            await client.initialize(deer_config)
            assert client.get_tools()

        assert client.get_tools() == []
