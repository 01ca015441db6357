"""워크플로우 상태 관리

연구 워크플로우의 입력 상태 생성과 계획 표시/갱신 유틸리티입니다.
"""

from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage

from ..models import AgentName, Plan, ResearchState


def create_initial_state(
    user_message: str,
    locale: str = "en-US",
    auto_accepted_plan: bool = False,
    enable_background_investigation: bool = False,
    max_plan_iterations: int = 1,
    max_step_num: int = 3,
) -> ResearchState:
    """새 연구 요청의 입력 상태를 생성합니다

    같은 스레드에서 이어지는 요청이면 messages는 add_messages로 기존 대화에 추가되고,
    계획과 보고서 관련 필드는 초기화됩니다.

    Args:
        user_message: 사용자 메시지
        locale: 기본 로케일 (코디네이터가 감지하면 덮어씀)
        auto_accepted_plan: 계획을 사람 검토 없이 자동 승인할지 여부
        enable_background_investigation: 계획 전에 배경 검색을 수행할지 여부
        max_plan_iterations: 최대 계획 반복 횟수
        max_step_num: 계획당 최대 단계 수

    Returns:
        초기화된 ResearchState
    """
    return {
        "messages": [HumanMessage(content=user_message)],
        "goto": AgentName.COORDINATOR,
        "locale": locale,
        "plan_iterations": 0,
        "max_plan_iterations": max_plan_iterations,
        "max_step_num": max_step_num,
        "current_plan": None,
        "interrupt_feedback": "",
        "auto_accepted_plan": auto_accepted_plan,
        "enable_background_investigation": enable_background_investigation,
        "background_investigation_results": "",
        "final_report": "",
    }


def message_text(message: Any) -> str:
    """메시지(또는 도구 결과)의 내용을 문자열로 변환합니다

    content가 블록 리스트인 경우 text 블록만 이어 붙입니다.
    """
    content = message.content if isinstance(message, BaseMessage) else message
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "\n".join(parts)
    return str(content)


def format_plan(plan: Optional[Plan]) -> str:
    """계획을 사람이 읽기 좋은 마크다운으로 변환합니다"""
    if plan is None:
        return "(계획 없음)"

    lines: List[str] = [f"# {plan.title or '연구 계획'}"]
    if plan.thought:
        lines.append("")
        lines.append(plan.thought)
    lines.append("")
    for index, step in enumerate(plan.steps, 1):
        status = "완료" if step.execution_res is not None else "대기"
        lines.append(f"{index}. [{step.step_type.value}] {step.title} ({status})")
        lines.append(f"   {step.description}")
    return "\n".join(lines)


def completed_steps_summary(plan: Plan) -> str:
    """이미 실행된 단계들의 결과를 요약 문자열로 만듭니다"""
    sections = []
    for step in plan.steps:
        if step.execution_res is None:
            continue
        sections.append(f"## 완료된 단계: {step.title}\n\n{step.execution_res}")
    return "\n\n".join(sections)


def set_step_result(plan: Plan, index: int, result: str) -> Dict[str, Any]:
    """단계 실행 결과를 기록하고 상태에 저장할 계획 딕셔너리를 반환합니다"""
    plan.steps[index].execution_res = result
    return plan.model_dump(mode="json")
