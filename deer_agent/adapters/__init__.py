"""
langchain-mcp-adapters 통합 모듈

deer.yaml 설정과 langchain-mcp-adapters를 연결하여
연구 에이전트가 사용할 MCP 도구를 제공합니다.
"""

from .enhanced_client import EnhancedMCPClient, create_enhanced_client

__all__ = ["EnhancedMCPClient", "create_enhanced_client"]
