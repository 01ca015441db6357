"""향상된 MCP 클라이언트

langchain-mcp-adapters를 활용하여 deer.yaml에 등록된 MCP 서버들과 연결하고
서버별로 도구를 관리합니다.
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional, Any

from langchain_core.tools import BaseTool
from langchain_mcp_adapters.client import MultiServerMCPClient

from ..config.deer_config import DeerConfig

# observability.setup_logging에서 설정한 json_rpc 로거를 이름으로 가져옵니다.
json_rpc_logger = logging.getLogger('json_rpc')


class EnhancedMCPClient:
    """langchain-mcp-adapters 기반 향상된 MCP 클라이언트

    MultiServerMCPClient를 사용하여 MCP 서버들과 연결하고,
    어떤 서버가 어떤 도구를 제공하는지 함께 기록합니다.
    """

    def __init__(self):
        """클라이언트 초기화"""
        self._client: Optional[MultiServerMCPClient] = None
        self._tools_by_server: Dict[str, List[BaseTool]] = {}
        self._tools_dict: Dict[str, BaseTool] = {}  # 도구 이름으로 빠른 검색
        self._logger = logging.getLogger(__name__)

    async def initialize(self, config: DeerConfig) -> None:
        """클라이언트 초기화 및 서버 연결

        하나의 서버라도 연결에 실패하면 모든 도구를 비우고 예외를 전파합니다.

        Args:
            config: deer 설정 (mcp.servers 사용)
        """
        connections = config.get_connections()
        self._logger.info(f"MCP 서버 설정 로드됨: {list(connections.keys())}")

        try:
            self._client = MultiServerMCPClient(connections)
            await self._load_tools(list(connections.keys()))
            self._logger.info(f"Enhanced MCP Client 초기화 완료: {len(self._tools_dict)}개 도구 로드됨")
        except Exception as e:
            self._logger.error(f"클라이언트 초기화 실패: {e}")
            self._client = None
            self._tools_by_server = {}
            self._tools_dict = {}
            raise

    async def _load_tools(self, server_names: List[str]) -> None:
        """서버별로 도구를 로드합니다"""
        if not self._client:
            raise ValueError("클라이언트가 초기화되지 않음")

        for server_name in server_names:
            tools = await self._client.get_tools(server_name=server_name)
            self._tools_by_server[server_name] = list(tools)
            for tool in tools:
                self._tools_dict[tool.name] = tool
                self._logger.info(f"도구 로드: {server_name}.{tool.name} - {tool.description}")

    def get_tools(self, server_prefix: Optional[str] = None) -> List[BaseTool]:
        """로드된 도구 목록 반환

        Args:
            server_prefix: 지정하면 이름이 이 접두사로 시작하는 서버의 도구만 반환

        Returns:
            LangChain 도구 목록
        """
        tools: List[BaseTool] = []
        for server_name, server_tools in self._tools_by_server.items():
            if server_prefix and not server_name.startswith(server_prefix):
                continue
            tools.extend(server_tools)
        return tools

    def find_tool(self, name_suffix: str) -> Optional[BaseTool]:
        """이름이 주어진 접미사로 끝나는 첫 번째 도구를 찾습니다"""
        for tool in self.get_tools():
            if tool.name.endswith(name_suffix):
                return tool
        return None

    def get_tool_names(self) -> List[str]:
        """도구 이름 목록 반환"""
        return [tool.name for tool in self.get_tools()]

    def get_server_names(self) -> List[str]:
        """서버 이름 목록 반환"""
        return list(self._tools_by_server.keys())

    def get_tools_info(self) -> Dict[str, List[Dict[str, str]]]:
        """서버별 도구 정보를 구조화하여 반환

        Returns:
            예: {"tavily": [{"name": "tavily_search", "description": "..."}]}
        """
        return {
            server_name: [
                {"name": tool.name, "description": tool.description or ""}
                for tool in tools
            ]
            for server_name, tools in self._tools_by_server.items()
        }

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any], thread_id: Optional[str] = "UNKNOWN_THREAD") -> Any:
        """MCP 도구를 호출합니다

        Args:
            tool_name: 도구 이름
            arguments: 도구 인자
            thread_id: 현재 연구 스레드 ID (로깅용)

        Returns:
            도구 실행 결과

        Raises:
            ValueError: 도구를 찾을 수 없는 경우
        """
        request_payload = {
            "jsonrpc": "2.0",
            "method": "tools/call",
            "params": {"name": tool_name, "arguments": arguments},
            "id": f"deer-{thread_id}-{int(asyncio.get_running_loop().time() * 1000)}",
        }
        json_rpc_logger.info(f"[THREAD:{thread_id}] [REQUEST] -> {json.dumps(request_payload, ensure_ascii=False)}")

        if tool_name not in self._tools_dict:
            available_tools = list(self._tools_dict.keys())
            raise ValueError(f"도구 '{tool_name}'을 찾을 수 없습니다. 사용 가능한 도구: {available_tools}")

        try:
            result = await self._tools_dict[tool_name].ainvoke(arguments)
        except Exception as e:
            self._logger.error(f"MCP 도구 호출 실패 {tool_name}: {e}")
            error_payload = {
                "jsonrpc": "2.0",
                "error": {"code": -32000, "message": f"Tool execution failed: {e}"},
                "id": request_payload["id"],
            }
            json_rpc_logger.error(f"[THREAD:{thread_id}] [RESPONSE_ERROR] <- {json.dumps(error_payload, ensure_ascii=False)}")
            raise

        response_payload = {"jsonrpc": "2.0", "result": result, "id": request_payload["id"]}
        json_rpc_logger.info(f"[THREAD:{thread_id}] [RESPONSE] <- {json.dumps(response_payload, ensure_ascii=False, default=str)}")
        return result

    async def close(self) -> None:
        """클라이언트 연결 해제"""
        if self._client:
            # MultiServerMCPClient는 도구 호출마다 세션을 열고 닫음
            self._client = None
            self._tools_by_server = {}
            self._tools_dict = {}
            self._logger.info("Enhanced MCP Client 연결 해제 완료")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        await self.close()


def create_enhanced_client() -> EnhancedMCPClient:
    """향상된 MCP 클라이언트 팩토리 함수"""
    return EnhancedMCPClient()
