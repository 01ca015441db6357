"""워크플로우 내장 도구

- ask_for_clarification: 실행을 중단(interrupt)하고 사용자에게 추가 정보를 묻는 도구
- subtract / multiply / divide: 수퍼바이저 예제의 수학 에이전트용 계산 도구
"""

import logging

from langchain_core.tools import tool
from langgraph.types import interrupt

logger = logging.getLogger(__name__)


@tool
def ask_for_clarification(question: str) -> str:
    """Call this tool when the user's request is ambiguous or lacks the information needed to proceed.

    Args:
        question: The specific question to ask the user to get the missing information.
    """
    logger.info(f"사용자에게 추가 정보 요청: {question}")
    answer = interrupt({"question": question})
    return str(answer)


@tool
def subtract(a: float, b: float) -> float:
    """Subtract b from a."""
    return a - b


@tool
def multiply(a: float, b: float) -> float:
    """Multiply two numbers."""
    return a * b


@tool
def divide(a: float, b: float) -> float:
    """Divide a by b."""
    if b == 0:
        raise ValueError("0으로 나눌 수 없습니다")
    return a / b
