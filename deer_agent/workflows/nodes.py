"""연구 워크플로우 노드

코디네이터, 플래너, 사람 피드백, 리서치 팀, 리서처, 코더, 리포터, 배경 조사 노드입니다.
각 노드는 상태 일부를 갱신하고 다음 에이전트를 goto에 기록하며,
그래프는 agent_hand_off로 goto를 읽어 라우팅합니다.

모델과 MCP 클라이언트는 상태가 아닌 ResearchNodes 인스턴스에 주입되므로
체크포인트에는 직렬화 가능한 값만 남습니다.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable, RunnableConfig
from langchain_core.tools import tool
from langgraph.graph import END
from langgraph.types import interrupt

from ..models import AgentName, HumanOption, ResearchState, StepType, load_plan, parse_plan
from .agents import AgentFactory, create_research_agent
from .prompts import PromptLoader
from .state import completed_steps_summary, message_text, set_step_result

logger = logging.getLogger(__name__)

# 코더가 사용할 수 있는 MCP 서버 이름 접두사
CODER_SERVER_PREFIX = "python"

# 배경 조사에 사용할 도구 이름 접미사
SEARCH_TOOL_SUFFIX = "search"

CITATION_REMINDER = (
    "중요: 본문에 출처를 인라인으로 달지 말고, 마지막에 '참고 자료' 섹션을 두어 "
    "`- [출처 제목](URL)` 형식으로 나열하세요. 각 출처 사이에는 빈 줄을 넣으세요."
)


@tool
def hand_to_planner(task_title: str, locale: str) -> str:
    """Hand off a research task to the planner.

    Args:
        task_title: The title of the task to research.
        locale: The user's language locale, e.g. en-US or ko-KR.
    """
    return f"'{task_title}' 작업을 플래너에게 전달했습니다 ({locale})"


def agent_hand_off(state: ResearchState) -> str:
    """노드가 기록한 goto를 읽어 다음 노드를 결정하는 조건부 엣지"""
    goto = state.get("goto") or END
    logger.info(f"에이전트 핸드오프: -> {goto}")
    return goto


def resolve_human_feedback(feedback: Any) -> Optional[Tuple[str, str]]:
    """사람 피드백을 해석합니다

    피드백은 "accepted" 또는 "edit_plan"이며, 뒤에 ":"와 수정 의견을 붙일 수 있습니다.
    대소문자는 구분하지 않습니다.

    Returns:
        (다음 노드, 수정 의견) 또는 알 수 없는 피드백이면 None
    """
    option, _, comment = str(feedback or "").partition(":")
    option = option.strip().lower()
    if option == HumanOption.ACCEPT_PLAN:
        return AgentName.RESEARCH_TEAM, ""
    if option == HumanOption.EDIT_PLAN:
        return AgentName.PLANNER, comment.strip()
    return None


def route_research_team(state: ResearchState) -> str:
    """리서치 팀: 다음에 실행할 에이전트를 결정합니다"""
    plan = load_plan(state)
    if plan is None:
        return AgentName.PLANNER

    index = plan.current_step_index()
    if index is None:
        # 모든 단계 완료
        if state.get("plan_iterations", 0) >= state.get("max_plan_iterations", 1):
            return AgentName.REPORTER
        return AgentName.PLANNER

    if plan.steps[index].step_type == StepType.RESEARCH:
        return AgentName.RESEARCHER
    return AgentName.CODER


def _thread_id(config: Optional[RunnableConfig]) -> str:
    if not config:
        return "UNKNOWN_THREAD"
    return config.get("configurable", {}).get("thread_id", "UNKNOWN_THREAD")


class ResearchNodes:
    """연구 워크플로우 노드 모음

    Args:
        chat_model: 코디네이터/리서처/코더/리포터가 사용하는 채팅 모델
        plan_model: 플래너가 사용하는 (JSON 출력) 모델
        mcp_client: EnhancedMCPClient (없으면 도구 없이 동작)
        prompts: 프롬프트 로더
        agent_factory: (모델, 도구, 시스템 프롬프트) -> ReAct 에이전트
    """

    def __init__(
        self,
        chat_model: BaseChatModel,
        plan_model: Optional[Runnable] = None,
        mcp_client=None,
        prompts: Optional[PromptLoader] = None,
        agent_factory: AgentFactory = create_research_agent,
    ):
        self.chat_model = chat_model
        self.plan_model = plan_model or chat_model
        self.mcp_client = mcp_client
        self.prompts = prompts or PromptLoader()
        self.agent_factory = agent_factory

    async def coordinator(self, state: ResearchState) -> Dict[str, Any]:
        """사용자와 대화하고, 연구가 필요하면 플래너에게 넘깁니다"""
        locale = state.get("locale") or "en-US"
        system_prompt = self.prompts.render(AgentName.COORDINATOR, locale=locale)
        model = self.chat_model.bind_tools([hand_to_planner])

        response = await model.ainvoke([SystemMessage(content=system_prompt)] + list(state.get("messages", [])))

        tool_calls = getattr(response, "tool_calls", None) or []
        if tool_calls and tool_calls[0]["name"] == hand_to_planner.name:
            args = tool_calls[0].get("args") or {}
            logger.info(f"코디네이터 핸드오프: {args.get('task_title', '')}")
            goto = AgentName.PLANNER
            if state.get("enable_background_investigation"):
                goto = AgentName.BACKGROUND_INVESTIGATOR
            return {"locale": args.get("locale") or locale, "goto": goto}

        content = message_text(response)
        logger.info("코디네이터 직접 응답")
        return {
            "messages": [AIMessage(content=content, name=AgentName.COORDINATOR)],
            "final_report": content,
            "goto": END,
        }

    async def background_investigator(self, state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
        """검색 도구로 사용자 요청에 대한 배경 정보를 수집합니다"""
        update = {"background_investigation_results": "", "goto": AgentName.PLANNER}

        search_tool = self.mcp_client.find_tool(SEARCH_TOOL_SUFFIX) if self.mcp_client else None
        if search_tool is None:
            logger.warning("배경 조사용 검색 도구가 없습니다")
            return update

        messages = state.get("messages", [])
        query = message_text(messages[-1]) if messages else ""
        try:
            result = await self.mcp_client.call_tool(search_tool.name, {"query": query}, thread_id=_thread_id(config))
        except Exception as e:
            logger.error(f"배경 조사 실패: {e}")
            return update

        update["background_investigation_results"] = message_text(result)
        logger.info(f"배경 조사 완료: {len(update['background_investigation_results'])} 글자")
        return update

    async def planner(self, state: ResearchState) -> Dict[str, Any]:
        """연구 계획을 생성합니다"""
        locale = state.get("locale") or "en-US"
        plan_iterations = state.get("plan_iterations", 0)
        max_step_num = state.get("max_step_num", 3)

        system_prompt = self.prompts.render(AgentName.PLANNER, locale=locale, max_step_num=max_step_num)
        messages = [SystemMessage(content=system_prompt)] + list(state.get("messages", []))
        background = state.get("background_investigation_results")
        if state.get("enable_background_investigation") and background:
            messages.append(HumanMessage(content=f"사용자 요청에 대한 배경 조사 결과:\n\n{background}"))

        response = await self.plan_model.ainvoke(messages)
        content = message_text(response)

        try:
            plan = parse_plan(content)
        except ValueError as e:
            logger.warning(f"계획 파싱 실패 (반복 {plan_iterations}회차): {e}")
            return {"goto": AgentName.REPORTER if plan_iterations > 0 else END}

        if len(plan.steps) > max_step_num:
            logger.info(f"계획 단계 수 제한: {len(plan.steps)} -> {max_step_num}")
            plan.steps = plan.steps[:max_step_num]

        logger.info(f"계획 생성 완료: {plan.title} ({len(plan.steps)}단계)")
        return {
            "messages": [AIMessage(content=content, name=AgentName.PLANNER)],
            "current_plan": plan.model_dump(mode="json"),
            "plan_iterations": plan_iterations + 1,
            "locale": plan.locale or locale,
            "goto": AgentName.REPORTER if plan.has_enough_context else AgentName.HUMAN,
        }

    def human_feedback(self, state: ResearchState) -> Dict[str, Any]:
        """계획에 대한 사람의 승인 또는 수정 요청을 받습니다

        피드백이 없거나 알 수 없는 값이면 실행을 중단(interrupt)하고 재개를 기다립니다.
        """
        if state.get("auto_accepted_plan"):
            return {"interrupt_feedback": "", "goto": AgentName.RESEARCH_TEAM}

        feedback = state.get("interrupt_feedback") or ""
        decision = resolve_human_feedback(feedback)
        while decision is None:
            feedback = interrupt({
                "message": "계획을 검토해 주세요. 'accepted' 또는 'edit_plan: <수정 의견>'을 입력하세요.",
                "plan": state.get("current_plan"),
            })
            decision = resolve_human_feedback(feedback)

        goto, comment = decision
        logger.info(f"사람 피드백 수신: {feedback} -> {goto}")
        update: Dict[str, Any] = {"interrupt_feedback": "", "goto": goto}
        if comment:
            update["messages"] = [HumanMessage(content=comment, name="feedback")]
        return update

    def research_team(self, state: ResearchState) -> Dict[str, Any]:
        """계획의 다음 단계를 담당할 에이전트에게 넘깁니다"""
        return {"goto": route_research_team(state)}

    async def researcher(self, state: ResearchState) -> Dict[str, Any]:
        """검색 도구로 현재 연구 단계를 수행합니다"""
        tools = self.mcp_client.get_tools() if self.mcp_client else []
        return await self._execute_step(state, AgentName.RESEARCHER, tools, CITATION_REMINDER)

    async def coder(self, state: ResearchState) -> Dict[str, Any]:
        """Python 실행 도구로 현재 처리 단계를 수행합니다"""
        tools = self.mcp_client.get_tools(server_prefix=CODER_SERVER_PREFIX) if self.mcp_client else []
        return await self._execute_step(state, AgentName.CODER, tools)

    async def _execute_step(
        self,
        state: ResearchState,
        agent_name: str,
        tools: List,
        reminder: Optional[str] = None,
    ) -> Dict[str, Any]:
        plan = load_plan(state)
        index = plan.current_step_index() if plan else None
        if index is None:
            logger.warning(f"{agent_name}: 실행할 단계가 없습니다")
            return {"goto": AgentName.RESEARCH_TEAM}

        locale = state.get("locale") or "en-US"
        step = plan.steps[index]
        task = f"# 현재 단계\n\n## 제목\n\n{step.title}\n\n## 설명\n\n{step.description}\n\n## 언어\n\n{locale}"
        completed = completed_steps_summary(plan)
        if completed:
            task = f"# 이전 단계 결과\n\n{completed}\n\n{task}"

        messages = [HumanMessage(content=task)]
        if reminder:
            messages.append(HumanMessage(content=reminder, name="system"))

        system_prompt = self.prompts.render(agent_name, locale=locale)
        agent = self.agent_factory(self.chat_model, tools, system_prompt)
        logger.info(f"{agent_name} 단계 실행: {step.title} (도구 {len(tools)}개)")

        result = await agent.ainvoke({"messages": messages})
        content = message_text(result["messages"][-1])

        return {
            "messages": [AIMessage(content=content, name=agent_name)],
            "current_plan": set_step_result(plan, index, content),
            "goto": AgentName.RESEARCH_TEAM,
        }

    async def reporter(self, state: ResearchState) -> Dict[str, Any]:
        """계획과 단계별 결과로 최종 보고서를 작성합니다"""
        locale = state.get("locale") or "en-US"
        system_prompt = self.prompts.render(AgentName.REPORTER, locale=locale)

        messages = [SystemMessage(content=system_prompt)]
        messages.extend(m for m in state.get("messages", []) if isinstance(m, HumanMessage))

        plan = load_plan(state)
        if plan is not None:
            messages.append(HumanMessage(content=f"# 연구 요청\n\n## 제목\n\n{plan.title}\n\n## 설명\n\n{plan.thought}"))
            for step in plan.steps:
                if step.execution_res:
                    messages.append(HumanMessage(content=f"다음은 조사 결과입니다:\n\n### {step.title}\n\n{step.execution_res}"))

        response = await self.chat_model.ainvoke(messages)
        report = message_text(response)
        logger.info(f"최종 보고서 생성 완료: {len(report)} 글자")
        return {
            "messages": [AIMessage(content=report, name=AgentName.REPORTER)],
            "final_report": report,
            "goto": END,
        }
