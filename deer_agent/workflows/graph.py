"""LangGraph StateGraph 워크플로우 구성

연구 노드들을 연결하여 deer 연구 워크플로우를 구성합니다.
모든 노드는 같은 조건부 엣지(agent_hand_off)로 연결되어, 노드가 기록한 goto로 이동합니다.
"""

import logging
from typing import Optional

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import StateGraph, START, END
from langgraph.graph.state import CompiledStateGraph

from ..models import AgentName, ResearchState
from .nodes import ResearchNodes, agent_hand_off

logger = logging.getLogger(__name__)


def build_research_graph(
    nodes: ResearchNodes,
    checkpointer: Optional[BaseCheckpointSaver] = None,
) -> CompiledStateGraph:
    """deer 연구 워크플로우를 생성합니다

    워크플로우 구조:
    START → coordinator → [background_investigator] → planner → human_feedback → research_team
    research_team → researcher / coder → research_team (단계 반복)
    research_team → planner (재계획) / reporter → END

    Args:
        nodes: 의존성이 주입된 노드 모음
        checkpointer: 사람 피드백 중단/재개를 위한 체크포인터

    Returns:
        컴파일된 LangGraph 워크플로우
    """
    workflow = StateGraph(ResearchState)

    workflow.add_node(AgentName.COORDINATOR, nodes.coordinator)
    workflow.add_node(AgentName.BACKGROUND_INVESTIGATOR, nodes.background_investigator)
    workflow.add_node(AgentName.PLANNER, nodes.planner)
    workflow.add_node(AgentName.HUMAN, nodes.human_feedback)
    workflow.add_node(AgentName.RESEARCH_TEAM, nodes.research_team)
    workflow.add_node(AgentName.RESEARCHER, nodes.researcher)
    workflow.add_node(AgentName.CODER, nodes.coder)
    workflow.add_node(AgentName.REPORTER, nodes.reporter)

    workflow.add_edge(START, AgentName.COORDINATOR)

    # 모든 에이전트는 goto 값에 따라 어느 에이전트로든 넘길 수 있음
    path_map = {name: name for name in AgentName.all()}
    path_map[END] = END
    for name in AgentName.all():
        workflow.add_conditional_edges(name, agent_hand_off, path_map)

    compiled_workflow = workflow.compile(checkpointer=checkpointer)

    logger.info("deer 연구 워크플로우 생성 완료")
    return compiled_workflow
