"""Plan-Execute-Replan 워크플로우 테스트"""

import uuid
from typing import TypedDict

import pytest
from langchain_core.messages import AIMessage
from langgraph.graph import StateGraph, START, END
from langgraph.types import Command

from deer_agent.checkpoints import InMemoryCheckPointStore, KVCheckpointSaver
from deer_agent.workflows import (
    PlanExecuteNodes,
    ask_for_clarification,
    build_plan_execute_graph,
    resume_plan_execute,
    run_plan_execute,
)

from .conftest import FakeChatModel


def _workflow(plan_responses, agent_recorder):
    nodes = PlanExecuteNodes(
        plan_model=FakeChatModel(responses=[AIMessage(content=r) for r in plan_responses]),
        chat_model=FakeChatModel(responses=[AIMessage(content="unused")]),
        tools=[],
        agent_factory=agent_recorder,
    )
    return build_plan_execute_graph(nodes)


class TestPlanExecute:
    """계획-실행-재계획 루프 테스트"""

    @pytest.mark.asyncio
    async def test_replan_then_respond(self, agent_recorder):
        workflow = _workflow([
            '{"steps": ["인구 조회", "차이 계산"]}',
            '```json\n{"steps": ["차이 계산"]}\n```',
            '{"response": "차이는 600만 명"}',
        ], agent_recorder)

        result = await run_plan_execute(workflow, "서울과 부산의 인구 차이는?")

        assert result["success"] is True
        assert result["response"] == "차이는 600만 명"
        assert [step for step, _ in result["past_steps"]] == ["인구 조회", "차이 계산"]
        assert "## 지금 수행할 단계\n차이 계산" in agent_recorder.calls[1]["messages"][0].content
        assert "### 인구 조회" in agent_recorder.calls[1]["messages"][0].content

    @pytest.mark.asyncio
    async def test_empty_replan_uses_last_result(self, agent_recorder):
        workflow = _workflow(['{"steps": ["조회"]}', '{"steps": []}'], agent_recorder)

        result = await run_plan_execute(workflow, "질문")

        assert result["response"] == "단계 결과 1"

    @pytest.mark.asyncio
    async def test_stops_at_max_iterations(self, agent_recorder):
        workflow = _workflow(['{"steps": ["a", "b", "c"]}'], agent_recorder)

        result = await run_plan_execute(workflow, "질문", max_iterations=1)

        assert len(result["past_steps"]) == 1
        assert result["response"] == "단계 결과 1"

    @pytest.mark.asyncio
    async def test_invalid_plan_returns_error(self, agent_recorder):
        workflow = _workflow(['{"no_steps": true}'], agent_recorder)

        result = await run_plan_execute(workflow, "질문")

        assert result["success"] is False
        assert "steps" in result["error"]


class ClarifyingAgent:
    """실행 중 ask_for_clarification 도구로 사용자에게 도시를 묻는 에이전트"""

    def __init__(self, tools):
        self.tools = tools

    async def ainvoke(self, inputs, config=None):
        city = await ask_for_clarification.ainvoke({"question": "어느 도시인가요?"})
        return {"messages": list(inputs["messages"]) + [AIMessage(content=f"{city} 인구 조사 완료")]}


class TestClarification:
    """추가 정보 질문(interrupt)과 재개 테스트"""

    def test_tool_added_when_enabled(self):
        model = FakeChatModel(responses=[AIMessage(content="x")])

        nodes = PlanExecuteNodes(plan_model=model, chat_model=model, tools=[], enable_clarification=True)

        assert [t.name for t in nodes.tools] == ["ask_for_clarification"]
        assert PlanExecuteNodes(plan_model=model, chat_model=model).tools == []

    @pytest.mark.asyncio
    async def test_tool_interrupts_and_returns_answer(self):
        class State(TypedDict, total=False):
            answer: str

        async def ask(state: State):
            return {"answer": await ask_for_clarification.ainvoke({"question": "몇 년도인가요?"})}

        builder = StateGraph(State)
        builder.add_node("ask", ask)
        builder.add_edge(START, "ask")
        builder.add_edge("ask", END)
        graph = builder.compile(checkpointer=KVCheckpointSaver(InMemoryCheckPointStore()))
        config = {"configurable": {"thread_id": "clarify"}}

        await graph.ainvoke({}, config)
        snapshot = await graph.aget_state(config)
        assert snapshot.tasks[0].interrupts[0].value == {"question": "몇 년도인가요?"}

        final_state = await graph.ainvoke(Command(resume="2025"), config)
        assert final_state["answer"] == "2025"

    @pytest.mark.asyncio
    async def test_plan_execute_interrupt_and_resume(self):
        created = []

        def agent_factory(model, tools, system_prompt):
            created.append([t.name for t in tools])
            return ClarifyingAgent(tools)

        model = FakeChatModel(responses=[
            AIMessage(content='{"steps": ["인구 조회"]}'),
            AIMessage(content='{"response": "서울 인구는 940만 명"}'),
        ])
        nodes = PlanExecuteNodes(
            plan_model=model,
            chat_model=model,
            agent_factory=agent_factory,
            enable_clarification=True,
        )
        workflow = build_plan_execute_graph(nodes, checkpointer=KVCheckpointSaver(InMemoryCheckPointStore()))
        thread_id = str(uuid.uuid4())

        result = await run_plan_execute(workflow, "그 도시 인구는?", thread_id=thread_id)

        assert result["success"] is True
        assert result["status"] == "interrupted"
        assert result["question"] == "어느 도시인가요?"

        result = await resume_plan_execute(workflow, thread_id, "서울")

        assert result["status"] == "completed"
        assert result["response"] == "서울 인구는 940만 명"
        assert result["past_steps"] == [["인구 조회", "서울 인구 조사 완료"]]
        assert created[0] == ["ask_for_clarification"]

    @pytest.mark.asyncio
    async def test_without_thread_status_is_completed(self, agent_recorder):
        workflow = _workflow(['{"steps": ["조회"]}', '{"response": "끝"}'], agent_recorder)

        result = await run_plan_execute(workflow, "질문")

        assert result["status"] == "completed"
        assert "question" not in result
