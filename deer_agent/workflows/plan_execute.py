"""Plan-Execute-Replan 워크플로우

플래너가 단계 목록을 만들고, 실행기가 첫 단계를 ReAct 에이전트로 수행한 뒤,
재계획기가 남은 단계를 고치거나 최종 응답을 내는 반복 워크플로우입니다.

START → planner → executor → replanner → executor ... → END
"""

import logging
import operator
from typing import Annotated, Any, Dict, List, Optional, Tuple, TypedDict

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import Runnable
from langgraph.graph import StateGraph, START, END
from langgraph.graph.state import CompiledStateGraph
from langgraph.types import Command

from ..models import load_json_output
from .agents import AgentFactory, create_research_agent
from .state import message_text
from .tools import ask_for_clarification

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 20

PLANNER_PROMPT = """주어진 목표를 달성하기 위한 간단한 단계별 계획을 세우세요.
각 단계는 그 자체로 수행 가능해야 하며, 마지막 단계의 결과가 최종 답이 되어야 합니다.
불필요한 단계는 넣지 마세요.

다른 설명 없이 다음 형식의 JSON만 출력하세요:
{"steps": ["단계 1", "단계 2"]}"""

EXECUTOR_PROMPT = "당신은 주어진 단계를 도구를 사용해 성실히 수행하는 실행기입니다. 수행 결과를 간결하게 보고하세요."

REPLANNER_PROMPT = """목표와 원래 계획, 지금까지 실행한 단계와 결과를 보고 계획을 갱신하세요.

- 목표를 달성할 만큼 정보가 모였다면 {"response": "사용자에게 줄 최종 답"}을 출력하세요.
- 아직 남은 일이 있다면 이미 끝난 단계는 빼고 {"steps": ["남은 단계", ...]}를 출력하세요.

다른 설명 없이 JSON만 출력하세요."""


class PlanExecuteState(TypedDict, total=False):
    """Plan-Execute-Replan 상태"""
    input: str
    plan: List[str]
    past_steps: Annotated[List[Tuple[str, str]], operator.add]
    response: str
    iteration: int
    max_iterations: int


def _format_objective(state: PlanExecuteState) -> str:
    lines = [f"## 목표\n{state.get('input', '')}", "", "## 계획"]
    lines.extend(f"{i}. {step}" for i, step in enumerate(state.get("plan", []), 1))
    if state.get("past_steps"):
        lines.extend(["", "## 실행한 단계"])
        for step, result in state["past_steps"]:
            lines.append(f"### {step}\n{result}")
    return "\n".join(lines)


def _parse_steps(data: Any) -> List[str]:
    steps = data.get("steps") if isinstance(data, dict) else None
    if not isinstance(steps, list):
        raise ValueError(f"steps 목록이 없습니다: {data}")
    return [str(step) for step in steps if str(step).strip()]


def _last_result(state: PlanExecuteState) -> str:
    past_steps = state.get("past_steps") or []
    return past_steps[-1][1] if past_steps else ""


def should_end(state: PlanExecuteState) -> str:
    """재계획 후 종료 여부를 결정하는 조건부 엣지"""
    if state.get("response"):
        return END
    return "executor"


class PlanExecuteNodes:
    """Plan-Execute-Replan 노드 모음

    Args:
        plan_model: JSON을 출력하는 모델 (플래너/재계획기)
        chat_model: 실행 에이전트용 채팅 모델
        tools: 실행 에이전트가 사용할 도구
        agent_factory: (모델, 도구, 시스템 프롬프트) -> ReAct 에이전트
        enable_clarification: 실행기가 사용자에게 추가 정보를 물을 수 있게 ask_for_clarification 도구 추가
    """

    def __init__(
        self,
        plan_model: Runnable,
        chat_model,
        tools: Optional[List] = None,
        agent_factory: AgentFactory = create_research_agent,
        enable_clarification: bool = False,
    ):
        self.plan_model = plan_model
        self.chat_model = chat_model
        self.tools = list(tools or [])
        if enable_clarification:
            self.tools.append(ask_for_clarification)
        self.agent_factory = agent_factory

    async def planner(self, state: PlanExecuteState) -> Dict[str, Any]:
        response = await self.plan_model.ainvoke([
            SystemMessage(content=PLANNER_PROMPT),
            HumanMessage(content=state["input"]),
        ])
        steps = _parse_steps(load_json_output(message_text(response)))
        logger.info(f"초기 계획 생성: {len(steps)}단계")
        return {"plan": steps, "iteration": 0}

    async def executor(self, state: PlanExecuteState) -> Dict[str, Any]:
        plan = state.get("plan") or []
        if not plan:
            return {}
        step = plan[0]
        task = f"{_format_objective(state)}\n\n## 지금 수행할 단계\n{step}"

        agent = self.agent_factory(self.chat_model, self.tools, EXECUTOR_PROMPT)
        result = await agent.ainvoke({"messages": [HumanMessage(content=task)]})
        output = message_text(result["messages"][-1])
        logger.info(f"단계 실행 완료: {step}")
        return {"past_steps": [(step, output)], "plan": plan[1:]}

    async def replanner(self, state: PlanExecuteState) -> Dict[str, Any]:
        iteration = state.get("iteration", 0) + 1
        max_iterations = state.get("max_iterations", DEFAULT_MAX_ITERATIONS)
        if iteration >= max_iterations:
            logger.warning(f"최대 반복 횟수 도달: {max_iterations}")
            return {"iteration": iteration, "response": _last_result(state)}

        response = await self.plan_model.ainvoke([
            SystemMessage(content=REPLANNER_PROMPT),
            HumanMessage(content=_format_objective(state)),
        ])
        data = load_json_output(message_text(response))
        if isinstance(data, dict) and data.get("response"):
            return {"iteration": iteration, "response": str(data["response"])}

        steps = _parse_steps(data)
        if not steps:
            return {"iteration": iteration, "plan": [], "response": _last_result(state)}
        logger.info(f"재계획: 남은 단계 {len(steps)}개")
        return {"iteration": iteration, "plan": steps}


def build_plan_execute_graph(nodes: PlanExecuteNodes, checkpointer=None) -> CompiledStateGraph:
    """Plan-Execute-Replan 워크플로우를 생성합니다

    ask_for_clarification 도구로 실행을 중단하려면 checkpointer가 필요합니다.
    """
    workflow = StateGraph(PlanExecuteState)
    workflow.add_node("planner", nodes.planner)
    workflow.add_node("executor", nodes.executor)
    workflow.add_node("replanner", nodes.replanner)

    workflow.add_edge(START, "planner")
    workflow.add_edge("planner", "executor")
    workflow.add_edge("executor", "replanner")
    workflow.add_conditional_edges("replanner", should_end, {"executor": "executor", END: END})

    logger.info("Plan-Execute-Replan 워크플로우 생성 완료")
    return workflow.compile(checkpointer=checkpointer)


def _run_config(thread_id: Optional[str], max_iterations: int) -> Dict[str, Any]:
    config: Dict[str, Any] = {"recursion_limit": max_iterations * 3 + 10}
    if thread_id:
        config["configurable"] = {"thread_id": thread_id}
    return config


async def _collect_result(
    workflow: CompiledStateGraph,
    final_state: Dict[str, Any],
    config: Dict[str, Any],
    thread_id: Optional[str],
) -> Dict[str, Any]:
    result = {
        "success": True,
        "status": "completed",
        "thread_id": thread_id,
        "response": final_state.get("response", ""),
        "past_steps": [list(item) for item in final_state.get("past_steps", [])],
    }
    if workflow.checkpointer is None or not thread_id:
        return result

    snapshot = await workflow.aget_state(config)
    interrupts = [item.value for task in snapshot.tasks for item in task.interrupts]
    if interrupts:
        question = interrupts[0].get("question", "") if isinstance(interrupts[0], dict) else str(interrupts[0])
        result.update(status="interrupted", question=question)
    return result


async def run_plan_execute(
    workflow: CompiledStateGraph,
    query: str,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    thread_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Plan-Execute-Replan 워크플로우를 실행합니다

    실행기가 ask_for_clarification으로 질문하면 status가 "interrupted"이고
    question에 질문이 담깁니다. resume_plan_execute로 답하여 이어갑니다.

    Returns:
        {"success", "status", "response", "past_steps", "thread_id", "question"?} 딕셔너리
    """
    config = _run_config(thread_id, max_iterations)
    try:
        final_state = await workflow.ainvoke(
            {"input": query, "max_iterations": max_iterations, "past_steps": []},
            config,
        )
        return await _collect_result(workflow, final_state, config, thread_id)
    except Exception as e:
        logger.error(f"Plan-Execute 실행 오류: {e}")
        return {"success": False, "status": "error", "response": "", "past_steps": [], "error": str(e)}


async def resume_plan_execute(
    workflow: CompiledStateGraph,
    thread_id: str,
    answer: str,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Dict[str, Any]:
    """추가 정보 질문으로 중단된 Plan-Execute 실행을 사용자 답변과 함께 재개합니다"""
    config = _run_config(thread_id, max_iterations)
    try:
        final_state = await workflow.ainvoke(Command(resume=answer), config)
        return await _collect_result(workflow, final_state, config, thread_id)
    except Exception as e:
        logger.error(f"Plan-Execute 재개 오류: {e}")
        return {"success": False, "status": "error", "response": "", "past_steps": [], "error": str(e)}
