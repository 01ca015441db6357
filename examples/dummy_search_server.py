#!/usr/bin/env python3
"""더미 검색 MCP 서버

테스트용 간단한 검색 MCP 서버입니다. 실제 검색 대신 고정된 결과를 반환합니다.
"""

from mcp.server.fastmcp import FastMCP

# MCP 서버 생성
mcp = FastMCP("Search")

DUMMY_RESULTS = [
    {"title": "위키백과", "url": "https://ko.wikipedia.org/wiki/", "snippet": "자유 백과사전"},
    {"title": "통계청", "url": "https://kostat.go.kr/", "snippet": "국가 통계 포털"},
]


@mcp.tool()
def web_search(query: str, max_results: int = 2) -> str:
    """웹에서 검색어에 대한 결과를 찾습니다

    Args:
        query: 검색어
        max_results: 최대 결과 수 (기본값: 2)

    Returns:
        검색 결과 마크다운 문자열
    """
    lines = [f"'{query}' 검색 결과:"]
    for result in DUMMY_RESULTS[:max_results]:
        lines.append(f"- [{result['title']}]({result['url']}): {result['snippet']} ({query})")
    return "\n".join(lines)


if __name__ == "__main__":
    mcp.run(transport="stdio")
