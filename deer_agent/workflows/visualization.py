"""LangGraph 워크플로우 시각화 모듈

연구 워크플로우 그래프를 Mermaid 또는 ASCII 형식으로 시각화합니다.
"""

import logging
from pathlib import Path
from typing import Optional

from langgraph.graph.state import CompiledStateGraph

from .graph import build_research_graph
from .nodes import ResearchNodes

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("mermaid", "ascii")


def create_structure_graph() -> CompiledStateGraph:
    """모델 없이 구조만 가진 연구 워크플로우를 생성합니다 (시각화용)"""
    return build_research_graph(ResearchNodes(chat_model=None))


def visualize_workflow(workflow: Optional[CompiledStateGraph] = None,
                       output_format: str = "mermaid",
                       save_to_file: Optional[str] = None) -> str:
    """워크플로우 그래프를 시각화합니다

    Args:
        workflow: 시각화할 워크플로우 (None이면 구조용 워크플로우 생성)
        output_format: 출력 형식 ("mermaid", "ascii")
        save_to_file: 파일로 저장할 경로 (선택적)

    Returns:
        시각화된 그래프 문자열

    Raises:
        ValueError: 지원되지 않는 형식인 경우
    """
    if output_format not in SUPPORTED_FORMATS:
        raise ValueError(f"지원되지 않는 형식: {output_format}")

    if workflow is None:
        workflow = create_structure_graph()

    graph = workflow.get_graph()
    if output_format == "mermaid":
        visualization = graph.draw_mermaid()
    else:
        try:
            visualization = graph.draw_ascii()
        except ImportError as e:
            # draw_ascii는 grandalf 패키지가 필요함
            logger.warning(f"ASCII 시각화 불가, Mermaid로 대체합니다: {e}")
            visualization = graph.draw_mermaid()

    if save_to_file:
        output_path = Path(save_to_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(visualization, encoding="utf-8")
        logger.info(f"워크플로우 시각화 저장: {output_path}")

    return visualization
