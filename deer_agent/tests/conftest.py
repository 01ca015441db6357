"""pytest 설정 파일

테스트 환경 설정과 공통 픽스처를 제공합니다.
실제 LLM/MCP 서버 대신 langchain_core의 가짜 채팅 모델과 로컬 도구를 사용합니다.
"""

import json
from typing import Any, Dict, List

import pytest
from langchain_core.language_models.fake_chat_models import FakeMessagesListChatModel
from langchain_core.messages import AIMessage
from langchain_core.tools import tool

from deer_agent.adapters import EnhancedMCPClient
from deer_agent.checkpoints import InMemoryCheckPointStore, KVCheckpointSaver
from deer_agent.config import DeerSettings
from deer_agent.workflows import ResearchNodes, ResearchWorkflowExecutor, build_research_graph


class FakeChatModel(FakeMessagesListChatModel):
    """도구 바인딩을 무시하고 정해진 응답을 차례로 돌려주는 채팅 모델"""

    def bind_tools(self, tools, **kwargs):
        return self


class FakeAgent:
    """ReAct 에이전트 대역: 받은 메시지를 기록하고 고정 결과를 반환"""

    def __init__(self, name: str, tools: List, system_prompt: str, calls: List[Dict[str, Any]]):
        self.name = name
        self.tools = tools
        self.system_prompt = system_prompt
        self.calls = calls

    async def ainvoke(self, inputs, config=None):
        self.calls.append({
            "prompt": self.system_prompt,
            "tools": [t.name for t in self.tools],
            "messages": inputs["messages"],
        })
        result = AIMessage(content=f"단계 결과 {len(self.calls)}")
        return {"messages": list(inputs["messages"]) + [result]}


class AgentRecorder:
    """agent_factory로 전달되어 생성된 에이전트 호출을 기록"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, model, tools, system_prompt):
        return FakeAgent("agent", tools, system_prompt, self.calls)


@tool
def web_search(query: str) -> str:
    """Search the web."""
    return f"'{query}' 검색 결과: 배경 정보"


@tool
def python_repl(code: str) -> str:
    """Run python code."""
    return "42"


SAMPLE_PLAN = {
    "locale": "ko-KR",
    "has_enough_context": False,
    "thought": "시장 규모와 성장률을 조사해야 함",
    "title": "배터리 시장 조사",
    "steps": [
        {
            "need_web_search": True,
            "title": "시장 규모 조사",
            "description": "2025년 시장 규모를 찾는다",
            "step_type": "research",
        },
        {
            "need_web_search": False,
            "title": "성장률 계산",
            "description": "연평균 성장률을 계산한다",
            "step_type": "processing",
        },
    ],
}


def hand_off_message(task_title: str = "배터리 시장 조사", locale: str = "ko-KR") -> AIMessage:
    """코디네이터가 플래너에게 넘기는 도구 호출 응답"""
    return AIMessage(
        content="",
        tool_calls=[{
            "name": "hand_to_planner",
            "args": {"task_title": task_title, "locale": locale},
            "id": "call_hand_off",
        }],
    )


def plan_message(plan: Dict[str, Any] = None) -> AIMessage:
    return AIMessage(content=json.dumps(plan or SAMPLE_PLAN, ensure_ascii=False))


@pytest.fixture
def sample_plan() -> Dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_PLAN))


@pytest.fixture
def settings(tmp_path) -> DeerSettings:
    """.env 파일과 무관한 테스트용 설정"""
    return DeerSettings(
        _env_file=None,
        openai_api_key="test-key",
        checkpoint_dir=str(tmp_path / "checkpoints"),
    )


@pytest.fixture
def mcp_client() -> EnhancedMCPClient:
    """서버 연결 없이 도구만 등록한 MCP 클라이언트"""
    client = EnhancedMCPClient()
    client._tools_by_server = {"search": [web_search], "python-exec": [python_repl]}
    client._tools_dict = {web_search.name: web_search, python_repl.name: python_repl}
    return client


@pytest.fixture
def agent_recorder() -> AgentRecorder:
    return AgentRecorder()


@pytest.fixture
def build_executor(mcp_client, agent_recorder):
    """가짜 모델로 연구 실행기를 만드는 팩토리 픽스처"""

    def _build(chat_responses, plan_responses=None, **defaults) -> ResearchWorkflowExecutor:
        chat_model = FakeChatModel(responses=chat_responses)
        plan_model = FakeChatModel(responses=plan_responses or [plan_message()])
        nodes = ResearchNodes(
            chat_model=chat_model,
            plan_model=plan_model,
            mcp_client=mcp_client,
            agent_factory=agent_recorder,
        )
        checkpointer = KVCheckpointSaver(InMemoryCheckPointStore())
        workflow = build_research_graph(nodes, checkpointer=checkpointer)
        options = {"max_plan_iterations": 1, "max_step_num": 3}
        options.update(defaults)
        return ResearchWorkflowExecutor(workflow, defaults=options, mcp_client=mcp_client, checkpointer=checkpointer)

    return _build
