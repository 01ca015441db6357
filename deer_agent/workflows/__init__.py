"""워크플로우 패키지

LangGraph 기반의 deer 연구 워크플로우, Plan-Execute-Replan 워크플로우, 수퍼바이저 워크플로우입니다.

주요 구성요소:
- 노드들: 코디네이터, 플래너, 사람 피드백, 리서치 팀, 리서처, 코더, 리포터
- 그래프: goto 기반 에이전트 핸드오프
- 실행기: 실행, 사람 피드백 재개, 스트리밍
"""

from .nodes import ResearchNodes, agent_hand_off, resolve_human_feedback, route_research_team
from .graph import build_research_graph
from .executor import ResearchWorkflowExecutor, create_research_executor
from .plan_execute import PlanExecuteNodes, build_plan_execute_graph, run_plan_execute, resume_plan_execute
from .supervisor import SubAgent, SupervisorNodes, build_supervisor_graph, create_layered_supervisor, run_supervisor
from .tools import ask_for_clarification
from .state import create_initial_state, format_plan

__all__ = [
    # 노드
    'ResearchNodes',
    'agent_hand_off',
    'resolve_human_feedback',
    'route_research_team',
    # 그래프와 실행기
    'build_research_graph',
    'ResearchWorkflowExecutor',
    'create_research_executor',
    # Plan-Execute-Replan
    'PlanExecuteNodes',
    'build_plan_execute_graph',
    'run_plan_execute',
    'resume_plan_execute',
    'ask_for_clarification',
    # 수퍼바이저
    'SubAgent',
    'SupervisorNodes',
    'build_supervisor_graph',
    'create_layered_supervisor',
    'run_supervisor',
    # 상태
    'create_initial_state',
    'format_plan',
]
