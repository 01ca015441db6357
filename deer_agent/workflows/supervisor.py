"""수퍼바이저 워크플로우

수퍼바이저가 하위 에이전트에게 한 번에 하나씩 일을 넘기고, 하위 에이전트는
결과를 수퍼바이저에게 보고하는 핸드오프 워크플로우입니다.
하위 에이전트는 도구를 가진 ReAct 에이전트이거나, 또 다른 수퍼바이저 그래프일 수 있습니다.

START → supervisor → <sub_agent> → supervisor ... → END
"""

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable
from langchain_core.tools import BaseTool, StructuredTool
from langgraph.graph import StateGraph, START, END
from langgraph.graph.message import add_messages
from langgraph.graph.state import CompiledStateGraph
from pydantic import BaseModel, Field

from .agents import AgentFactory, create_research_agent
from .state import message_text
from .tools import divide, multiply, subtract

logger = logging.getLogger(__name__)

SUPERVISOR = "supervisor"
HAND_OFF_PREFIX = "transfer_to_"
DEFAULT_MAX_ITERATIONS = 10

SUPERVISOR_PROMPT = """당신은 수퍼바이저입니다. 직접 일하지 말고 아래 에이전트에게 일을 맡기세요.
한 번에 한 에이전트에게만 일을 넘기고, 여러 에이전트를 동시에 호출하지 마세요.
모든 일이 끝나면 도구를 호출하지 말고 사용자에게 최종 답을 하세요.

에이전트 목록:
{agents}"""

SUB_AGENT_RULES = """
- 맡은 일이 끝나면 수퍼바이저에게 바로 보고하세요.
- 작업 결과만 답하고 다른 말은 덧붙이지 마세요."""


class HandOffArgs(BaseModel):
    task: str = Field(description="하위 에이전트가 수행할 작업 설명")


@dataclass
class SubAgent:
    """수퍼바이저가 일을 맡길 하위 에이전트

    agent가 주어지면 그대로 사용하고(예: 하위 수퍼바이저 그래프),
    없으면 agent_factory로 tools와 instruction을 가진 ReAct 에이전트를 만듭니다.
    """
    name: str
    description: str
    instruction: str = ""
    tools: List[BaseTool] = field(default_factory=list)
    agent: Optional[Runnable] = None


class SupervisorState(TypedDict, total=False):
    """수퍼바이저 워크플로우 상태"""
    messages: Annotated[List[AnyMessage], add_messages]
    goto: str
    task: str
    response: str
    iteration: int
    max_iterations: int


def _hand_off_tool(sub_agent: SubAgent) -> BaseTool:
    def hand_off(task: str) -> str:
        return f"{sub_agent.name}에게 작업을 넘겼습니다: {task}"

    return StructuredTool.from_function(
        func=hand_off,
        name=f"{HAND_OFF_PREFIX}{sub_agent.name}",
        description=f"Assign a task to {sub_agent.name}: {sub_agent.description}",
        args_schema=HandOffArgs,
    )


def route_supervisor(state: SupervisorState) -> str:
    """수퍼바이저가 기록한 goto로 이동하는 조건부 엣지"""
    return state.get("goto") or END


class SupervisorNodes:
    """수퍼바이저와 하위 에이전트 노드

    Args:
        chat_model: 수퍼바이저와 하위 ReAct 에이전트가 사용하는 채팅 모델
        sub_agents: 하위 에이전트 목록
        agent_factory: (모델, 도구, 시스템 프롬프트) -> ReAct 에이전트
        name: 로그와 메시지에 쓰이는 수퍼바이저 이름
    """

    def __init__(
        self,
        chat_model,
        sub_agents: List[SubAgent],
        agent_factory: AgentFactory = create_research_agent,
        name: str = SUPERVISOR,
    ):
        if not sub_agents:
            raise ValueError("하위 에이전트가 최소 하나 필요합니다")
        self.chat_model = chat_model
        self.sub_agents = {sub_agent.name: sub_agent for sub_agent in sub_agents}
        self.agent_factory = agent_factory
        self.name = name
        self.hand_off_tools = [_hand_off_tool(sub_agent) for sub_agent in sub_agents]

    def _system_prompt(self) -> str:
        agents = "\n".join(f"- {a.name}: {a.description}" for a in self.sub_agents.values())
        return SUPERVISOR_PROMPT.format(agents=agents)

    async def supervisor(self, state: SupervisorState) -> Dict[str, Any]:
        """다음에 일할 하위 에이전트를 고르거나 최종 답을 냅니다"""
        messages = list(state.get("messages", []))
        iteration = state.get("iteration", 0) + 1
        max_iterations = state.get("max_iterations", DEFAULT_MAX_ITERATIONS)
        if iteration > max_iterations:
            logger.warning(f"{self.name}: 최대 반복 횟수 도달 ({max_iterations})")
            last = message_text(messages[-1]) if messages else ""
            return {"iteration": iteration, "response": last, "goto": END}

        model = self.chat_model.bind_tools(self.hand_off_tools)
        response = await model.ainvoke([SystemMessage(content=self._system_prompt())] + messages)

        tool_calls = getattr(response, "tool_calls", None) or []
        if not tool_calls:
            content = message_text(response)
            logger.info(f"{self.name}: 최종 응답")
            return {
                "messages": [AIMessage(content=content, name=self.name)],
                "iteration": iteration,
                "response": content,
                "goto": END,
            }

        if len(tool_calls) > 1:
            logger.warning(f"{self.name}: 여러 에이전트 호출 중 첫 번째만 실행합니다")
        call = tool_calls[0]
        target = call["name"][len(HAND_OFF_PREFIX):] if call["name"].startswith(HAND_OFF_PREFIX) else ""
        if target not in self.sub_agents:
            logger.warning(f"{self.name}: 알 수 없는 에이전트 호출: {call['name']}")
            return {
                "messages": [HumanMessage(content=f"알 수 없는 도구입니다: {call['name']}", name="system")],
                "iteration": iteration,
                "goto": self.name,
            }

        task = str((call.get("args") or {}).get("task", ""))
        logger.info(f"{self.name} → {target}: {task}")
        return {
            "messages": [AIMessage(content=f"{target}에게 작업 지시: {task}", name=self.name)],
            "iteration": iteration,
            "task": task,
            "goto": target,
        }

    def sub_agent_node(self, sub_agent: SubAgent):
        """하위 에이전트를 실행하고 결과를 수퍼바이저에게 보고하는 노드를 만듭니다"""
        agent = sub_agent.agent
        if agent is None:
            instruction = f"{sub_agent.instruction}\n{SUB_AGENT_RULES}"
            agent = self.agent_factory(self.chat_model, sub_agent.tools, instruction)

        async def run_sub_agent(state: SupervisorState) -> Dict[str, Any]:
            conversation = [m for m in state.get("messages", []) if isinstance(m, HumanMessage)]
            task = HumanMessage(content=state.get("task", ""))
            result = await agent.ainvoke({"messages": conversation[:1] + [task]})
            content = message_text(result["messages"][-1])
            logger.info(f"{sub_agent.name} 작업 완료: {len(content)} 글자")
            return {
                "messages": [AIMessage(content=content, name=sub_agent.name)],
                "goto": self.name,
            }

        return run_sub_agent


def build_supervisor_graph(nodes: SupervisorNodes, checkpointer=None) -> CompiledStateGraph:
    """수퍼바이저 워크플로우를 생성합니다

    컴파일된 그래프는 {"messages": [...]}를 입력으로 받으므로
    다른 수퍼바이저의 하위 에이전트로 사용할 수 있습니다.
    """
    workflow = StateGraph(SupervisorState)
    workflow.add_node(nodes.name, nodes.supervisor)
    for name, sub_agent in nodes.sub_agents.items():
        workflow.add_node(name, nodes.sub_agent_node(sub_agent))
        workflow.add_edge(name, nodes.name)

    workflow.add_edge(START, nodes.name)
    path_map = {name: name for name in nodes.sub_agents}
    path_map[nodes.name] = nodes.name
    path_map[END] = END
    workflow.add_conditional_edges(nodes.name, route_supervisor, path_map)

    logger.info(f"수퍼바이저 워크플로우 생성 완료: {nodes.name} → {list(nodes.sub_agents)}")
    return workflow.compile(checkpointer=checkpointer)


def create_layered_supervisor(
    chat_model,
    search_tools: List[BaseTool],
    agent_factory: AgentFactory = create_research_agent,
) -> CompiledStateGraph:
    """조사 에이전트와, 계산 에이전트들을 거느린 수학 수퍼바이저로 이루어진 2단 수퍼바이저를 만듭니다"""
    math_agents = [
        SubAgent("subtract_agent", "뺄셈을 담당하는 에이전트", "당신은 뺄셈 에이전트입니다. 뺄셈 작업만 수행하세요.", [subtract]),
        SubAgent("multiply_agent", "곱셈을 담당하는 에이전트", "당신은 곱셈 에이전트입니다. 곱셈 작업만 수행하세요.", [multiply]),
        SubAgent("divide_agent", "나눗셈을 담당하는 에이전트", "당신은 나눗셈 에이전트입니다. 나눗셈 작업만 수행하세요.", [divide]),
    ]
    math_supervisor = build_supervisor_graph(
        SupervisorNodes(chat_model, math_agents, agent_factory=agent_factory, name="math_agent")
    )

    sub_agents = [
        SubAgent(
            "research_agent",
            "인터넷에서 정보를 검색하는 에이전트",
            "당신은 조사 에이전트입니다. 조사 작업만 수행하고 계산은 하지 마세요.",
            search_tools,
        ),
        SubAgent("math_agent", "수학 계산을 담당하는 에이전트", agent=math_supervisor),
    ]
    return build_supervisor_graph(SupervisorNodes(chat_model, sub_agents, agent_factory=agent_factory))


async def run_supervisor(
    workflow: CompiledStateGraph,
    query: str,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Dict[str, Any]:
    """수퍼바이저 워크플로우를 실행합니다

    Returns:
        {"success", "response", "trace"} 딕셔너리 (trace는 (에이전트, 내용) 목록)
    """
    try:
        final_state = await workflow.ainvoke(
            {"messages": [HumanMessage(content=query)], "max_iterations": max_iterations},
            {"recursion_limit": max_iterations * 2 + 5},
        )
    except Exception as e:
        logger.error(f"수퍼바이저 실행 오류: {e}")
        return {"success": False, "response": "", "trace": [], "error": str(e)}

    trace = [
        [message.name, message_text(message)]
        for message in final_state.get("messages", [])
        if isinstance(message, AIMessage)
    ]
    return {"success": True, "response": final_state.get("response", ""), "trace": trace}
