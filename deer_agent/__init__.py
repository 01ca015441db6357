"""
LangGraph deer 연구 에이전트

코디네이터, 플래너, 리서치 팀(리서처/코더), 리포터가 핸드오프하며
연구 보고서를 만드는 멀티 에이전트 워크플로우입니다.
MCP 서버의 도구를 사용하고, 계획은 사람의 검토를 거쳐 실행됩니다.
"""

__version__ = "1.0.0"
__author__ = "deer Agent Team"

from .config import DeerSettings, get_settings, DeerConfig, load_deer_config
from .adapters import EnhancedMCPClient
from .checkpoints import create_checkpointer
from .models import AgentName, Plan, Step, ResearchState
from .workflows import ResearchWorkflowExecutor, create_research_executor

__all__ = [
    # 설정
    "DeerSettings",
    "get_settings",
    "DeerConfig",
    "load_deer_config",
    # MCP 클라이언트
    "EnhancedMCPClient",
    # 체크포인트
    "create_checkpointer",
    # 모델
    "AgentName",
    "Plan",
    "Step",
    "ResearchState",
    # 실행기
    "ResearchWorkflowExecutor",
    "create_research_executor",
]
