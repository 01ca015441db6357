#!/usr/bin/env python3
"""더미 Python 실행 MCP 서버

테스트용 Python 코드 실행 MCP 서버입니다. 코드는 별도 프로세스에서 실행됩니다.
샌드박스가 없으므로 로컬 개발 용도로만 사용하세요.
"""

import subprocess
import sys

from mcp.server.fastmcp import FastMCP

# MCP 서버 생성
mcp = FastMCP("Python")


@mcp.tool()
def python_repl(code: str, timeout: int = 30) -> str:
    """Python 코드를 실행하고 표준 출력을 반환합니다

    결과를 보려면 print()를 사용하세요.

    Args:
        code: 실행할 Python 코드
        timeout: 최대 실행 시간(초)

    Returns:
        표준 출력과 표준 오류
    """
    try:
        completed = subprocess.run(
            [sys.executable, "-c", code],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return f"실행 시간 초과 ({timeout}초)"

    output = completed.stdout
    if completed.returncode != 0:
        output += f"\n[exit {completed.returncode}]\n{completed.stderr}"
    return output or "(출력 없음)"


if __name__ == "__main__":
    mcp.run(transport="stdio")
