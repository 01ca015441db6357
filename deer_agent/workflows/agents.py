"""ReAct 에이전트 생성

리서처/코더/plan-execute 실행기가 사용하는 도구 호출 에이전트를 만듭니다.
LangGraph prebuilt create_react_agent를 사용합니다.
"""

import logging
from typing import Any, Callable, List, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AnyMessage, SystemMessage
from langchain_core.runnables import Runnable
from langchain_core.tools import BaseTool
from langgraph.prebuilt import create_react_agent

from .state import message_text

logger = logging.getLogger(__name__)

# 에이전트 한 번 실행에서 허용하는 최대 그래프 단계 수
MAX_AGENT_STEPS = 40

# 모델 호출 전에 메시지 하나당 남기는 최대 문자 수 (뒤쪽 유지)
MAX_MESSAGE_CHARS = 50000

AgentFactory = Callable[[BaseChatModel, List[BaseTool], str], Runnable]


def clip_messages(messages: Sequence[AnyMessage], max_chars: int = MAX_MESSAGE_CHARS) -> List[AnyMessage]:
    """너무 긴 메시지의 내용을 마지막 max_chars 글자로 자릅니다

    원본 메시지는 변경하지 않고 복사본을 만듭니다.
    """
    clipped = []
    for message in messages:
        text = message_text(message)
        if isinstance(message.content, str) and len(text) > max_chars:
            logger.debug(f"메시지 자름: {len(text)} -> {max_chars} 글자")
            message = message.model_copy(update={"content": text[-max_chars:]})
        clipped.append(message)
    return clipped


def create_research_agent(model: BaseChatModel, tools: List[BaseTool], system_prompt: str) -> Runnable:
    """시스템 프롬프트와 도구를 가진 ReAct 에이전트를 생성합니다

    Args:
        model: 채팅 모델 (도구 바인딩 지원)
        tools: 에이전트가 사용할 도구 목록
        system_prompt: 렌더링된 시스템 프롬프트

    Returns:
        {"messages": [...]}를 입력으로 받는 실행 가능한 에이전트
    """

    def build_prompt(state: Any) -> List[AnyMessage]:
        return [SystemMessage(content=system_prompt)] + clip_messages(state["messages"])

    agent = create_react_agent(model, tools, prompt=build_prompt)
    logger.info(f"ReAct 에이전트 생성 완료: 도구 {len(tools)}개")
    return agent.with_config({"recursion_limit": MAX_AGENT_STEPS})
