"""deer-agent 데이터 모델

에이전트 이름, 사람 피드백 옵션, 연구 계획(Plan/Step), 그리고
LangGraph 워크플로우가 공유하는 ResearchState를 정의합니다.
"""

import json
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from langchain_core.messages import AnyMessage
from langgraph.graph.message import add_messages
from pydantic import BaseModel, Field, ValidationError


class AgentName:
    """그래프 노드(에이전트) 이름"""
    COORDINATOR = "coordinator"
    PLANNER = "planner"
    REPORTER = "reporter"
    RESEARCHER = "researcher"
    CODER = "coder"
    RESEARCH_TEAM = "research_team"
    BACKGROUND_INVESTIGATOR = "background_investigator"
    HUMAN = "human_feedback"

    @classmethod
    def all(cls) -> List[str]:
        return [
            cls.COORDINATOR, cls.PLANNER, cls.REPORTER, cls.RESEARCHER,
            cls.CODER, cls.RESEARCH_TEAM, cls.BACKGROUND_INVESTIGATOR, cls.HUMAN,
        ]


class HumanOption:
    """계획 검토 시 사람이 줄 수 있는 피드백"""
    EDIT_PLAN = "edit_plan"
    ACCEPT_PLAN = "accepted"


class StepType(str, Enum):
    """계획 단계 유형"""
    RESEARCH = "research"
    PROCESSING = "processing"


class Step(BaseModel):
    """계획의 단일 단계"""
    need_web_search: bool = Field(description="웹 검색이 필요한 단계인지 여부")
    title: str
    description: str
    step_type: StepType
    execution_res: Optional[str] = None


class Plan(BaseModel):
    """플래너가 생성하는 연구 계획"""
    locale: str = ""
    has_enough_context: bool = False
    thought: str = ""
    title: str = ""
    steps: List[Step] = Field(default_factory=list)

    def current_step_index(self) -> Optional[int]:
        """아직 실행 결과가 없는 첫 단계의 인덱스 (모두 완료되면 None)"""
        for index, step in enumerate(self.steps):
            if step.execution_res is None:
                return index
        return None


_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def load_json_output(text: str) -> Any:
    """모델 출력에서 JSON 값을 읽습니다

    ```json ... ``` 코드 펜스로 감싼 출력도 허용합니다.

    Raises:
        ValueError: JSON이 아닌 경우
    """
    content = (text or "").strip()
    match = _FENCE_PATTERN.search(content)
    if match:
        content = match.group(1)

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"계획 JSON 파싱 실패: {e}")


def parse_plan(text: str) -> Plan:
    """모델 출력 문자열을 Plan으로 파싱합니다

    Raises:
        ValueError: JSON이 아니거나 Plan 구조와 맞지 않는 경우
    """
    data = load_json_output(text)
    try:
        return Plan.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"계획 구조 검증 실패: {e}")


class ResearchState(TypedDict, total=False):
    """deer 연구 워크플로우 상태

    current_plan은 체크포인트 직렬화를 위해 Plan.model_dump() 결과(dict)로 저장합니다.
    """

    # 대화 메시지 (add_messages 리듀서로 누적)
    messages: Annotated[List[AnyMessage], add_messages]

    # 에이전트 간 핸드오프 대상
    goto: str

    # 계획 관련
    locale: str
    plan_iterations: int
    max_plan_iterations: int
    max_step_num: int
    current_plan: Optional[Dict[str, Any]]

    # 사람 피드백
    interrupt_feedback: str
    auto_accepted_plan: bool

    # 배경 조사
    enable_background_investigation: bool
    background_investigation_results: str

    # 최종 보고서
    final_report: str


def load_plan(state: ResearchState) -> Optional[Plan]:
    """상태에 저장된 계획을 Plan 객체로 복원합니다"""
    data = state.get("current_plan")
    if not data:
        return None
    return Plan.model_validate(data)
