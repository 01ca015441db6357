"""워크플로우 실행기

deer 연구 워크플로우의 실행, 사람 피드백 후 재개, 스트리밍을 담당합니다.
실행 상태는 thread_id별로 체크포인터에 저장되므로, 계획 검토로 중단된 실행을
같은 thread_id로 이어서 진행할 수 있습니다.
"""

import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from langchain_core.messages import AIMessage, AIMessageChunk
from langchain_core.runnables import RunnableConfig
from langgraph.graph.state import CompiledStateGraph
from langgraph.types import Command

from ..adapters import EnhancedMCPClient
from ..checkpoints import create_checkpointer
from ..config.deer_config import DeerConfig, load_settings_deer_config
from ..config.env_config import DeerSettings, get_settings
from ..models import AgentName
from ..streaming import (
    StreamMessage,
    StreamMessageType,
    create_session_start_message,
    create_agent_update_message,
    create_message_chunk,
    create_tool_call_message,
    create_plan_message,
    create_interrupt_message,
    create_final_report_message,
    create_error_message,
    create_session_end_message,
)
from .graph import build_research_graph
from .llm_utils import get_chat_llm, get_plan_llm
from .nodes import ResearchNodes
from .prompts import PromptLoader
from .state import create_initial_state, message_text

logger = logging.getLogger(__name__)

# 한 번의 실행에서 허용하는 최대 그래프 단계 수
DEFAULT_RECURSION_LIMIT = 100

RUN_OPTIONS = (
    "locale",
    "auto_accepted_plan",
    "enable_background_investigation",
    "max_plan_iterations",
    "max_step_num",
)


class ResearchWorkflowExecutor:
    """deer 연구 워크플로우 실행기

    Args:
        workflow: 체크포인터와 함께 컴파일된 연구 워크플로우
        defaults: 실행 옵션 기본값 (RUN_OPTIONS 키)
        mcp_client: 종료 시 함께 닫을 MCP 클라이언트
        checkpointer: 종료 시 함께 닫을 체크포인터
    """

    def __init__(
        self,
        workflow: CompiledStateGraph,
        defaults: Optional[Dict[str, Any]] = None,
        mcp_client: Optional[EnhancedMCPClient] = None,
        checkpointer=None,
    ):
        self.workflow = workflow
        self.defaults = dict(defaults or {})
        self.mcp_client = mcp_client
        self.checkpointer = checkpointer
        self._logger = logging.getLogger(__name__)

    def _config(self, thread_id: str) -> RunnableConfig:
        return {"configurable": {"thread_id": thread_id}, "recursion_limit": DEFAULT_RECURSION_LIMIT}

    def _initial_state(self, message: str, options: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(options) - set(RUN_OPTIONS)
        if unknown:
            raise ValueError(f"알 수 없는 실행 옵션: {sorted(unknown)}")
        merged = dict(self.defaults)
        merged.update({k: v for k, v in options.items() if v is not None})
        return create_initial_state(message, **merged)

    async def _pending_interrupts(self, config: RunnableConfig) -> List[Any]:
        snapshot = await self.workflow.aget_state(config)
        return [item.value for task in snapshot.tasks for item in task.interrupts]

    async def _build_result(self, thread_id: str) -> Dict[str, Any]:
        config = self._config(thread_id)
        snapshot = await self.workflow.aget_state(config)
        values = snapshot.values or {}
        interrupts = [item.value for task in snapshot.tasks for item in task.interrupts]

        result = {
            "success": True,
            "thread_id": thread_id,
            "status": "interrupted" if interrupts else "completed",
            "response": values.get("final_report", ""),
            "plan": values.get("current_plan"),
        }
        if interrupts:
            result["interrupt"] = interrupts[0]
        return result

    def _error_result(self, thread_id: str, error: Exception) -> Dict[str, Any]:
        return {
            "success": False,
            "thread_id": thread_id,
            "status": "error",
            "response": f"죄송합니다. 요청을 처리하는 중 오류가 발생했습니다: {error}",
            "plan": None,
            "error": str(error),
        }

    async def execute(self, message: str, thread_id: Optional[str] = None, **options) -> Dict[str, Any]:
        """새 연구 요청을 실행합니다

        Args:
            message: 사용자 메시지
            thread_id: 연구 스레드 ID (없으면 새로 생성)
            **options: locale, auto_accepted_plan, enable_background_investigation,
                max_plan_iterations, max_step_num

        Returns:
            실행 결과 딕셔너리 (status: completed / interrupted)
        """
        thread_id = thread_id or str(uuid.uuid4())
        try:
            self._logger.info(f"연구 워크플로우 실행 시작 - 스레드: {thread_id}")
            initial_state = self._initial_state(message, options)
            await self.workflow.ainvoke(initial_state, self._config(thread_id))
            result = await self._build_result(thread_id)
            self._logger.info(f"연구 워크플로우 실행 완료 - 스레드: {thread_id}, 상태: {result['status']}")
            return result
        except Exception as e:
            self._logger.error(f"연구 워크플로우 실행 오류: {e}")
            return self._error_result(thread_id, e)

    async def resume(self, thread_id: str, feedback: str) -> Dict[str, Any]:
        """계획 검토로 중단된 실행을 사람 피드백과 함께 재개합니다

        Args:
            thread_id: 중단된 연구 스레드 ID
            feedback: "accepted" 또는 "edit_plan[: 수정 의견]"
        """
        config = self._config(thread_id)
        try:
            if not await self._pending_interrupts(config):
                raise ValueError(f"중단된 실행이 없습니다: {thread_id}")
            self._logger.info(f"연구 워크플로우 재개 - 스레드: {thread_id}, 피드백: {feedback}")
            await self.workflow.ainvoke(Command(resume=feedback), config)
            return await self._build_result(thread_id)
        except Exception as e:
            self._logger.error(f"연구 워크플로우 재개 오류: {e}")
            return self._error_result(thread_id, e)

    async def stream(
        self,
        message: Optional[str] = None,
        thread_id: Optional[str] = None,
        feedback: Optional[str] = None,
        **options,
    ) -> AsyncIterator[StreamMessage]:
        """연구 워크플로우를 실행하며 진행 상황을 StreamMessage로 전달합니다

        feedback이 주어지면 thread_id의 중단된 실행을 재개합니다.
        """
        thread_id = thread_id or str(uuid.uuid4())
        config = self._config(thread_id)
        status = "completed"
        yield create_session_start_message(thread_id)

        try:
            if feedback is not None:
                if not await self._pending_interrupts(config):
                    raise ValueError(f"중단된 실행이 없습니다: {thread_id}")
                inputs: Any = Command(resume=feedback)
            else:
                if not message:
                    raise ValueError("메시지가 비어 있습니다")
                inputs = self._initial_state(message, options)

            async for mode, chunk in self.workflow.astream(inputs, config, stream_mode=["updates", "messages"]):
                if mode == "messages":
                    for stream_message in self._convert_message(chunk, thread_id):
                        yield stream_message
                else:
                    for stream_message in self._convert_update(chunk, thread_id):
                        if stream_message.type == StreamMessageType.INTERRUPT:
                            status = "interrupted"
                        yield stream_message
        except Exception as e:
            self._logger.error(f"스트리밍 워크플로우 실행 오류: {e}")
            status = "error"
            yield create_error_message(str(e), thread_id)

        yield create_session_end_message(thread_id, status=status)

    def _convert_message(self, chunk: Any, thread_id: str) -> List[StreamMessage]:
        message, metadata = chunk
        if not isinstance(message, AIMessage):
            return []
        agent = (metadata or {}).get("langgraph_node")
        messages = []

        text = message_text(message)
        if text:
            messages.append(create_message_chunk(text, thread_id, agent=agent))

        if isinstance(message, AIMessageChunk):
            for tool_chunk in message.tool_call_chunks:
                if tool_chunk.get("name"):
                    messages.append(create_tool_call_message(tool_chunk["name"], thread_id, agent=agent, arguments=tool_chunk.get("args")))
        else:
            for tool_call in message.tool_calls:
                messages.append(create_tool_call_message(tool_call["name"], thread_id, agent=agent, arguments=tool_call.get("args")))
        return messages

    def _convert_update(self, chunk: Dict[str, Any], thread_id: str) -> List[StreamMessage]:
        messages = []
        for node_name, update in chunk.items():
            if node_name == "__interrupt__":
                for item in update:
                    messages.append(create_interrupt_message(item.value, thread_id))
                continue
            if not isinstance(update, dict):
                continue

            messages.append(create_agent_update_message(node_name, update.get("goto"), thread_id))
            if node_name == AgentName.PLANNER and update.get("current_plan"):
                messages.append(create_plan_message(update["current_plan"], thread_id))
            if update.get("final_report"):
                messages.append(create_final_report_message(update["final_report"], thread_id))
        return messages

    async def get_state(self, thread_id: str) -> Optional[Dict[str, Any]]:
        """스레드의 현재 상태를 조회합니다 (체크포인트가 없는 스레드면 None)"""
        snapshot = await self.workflow.aget_state(self._config(thread_id))
        if snapshot.metadata is None and not snapshot.values:
            return None
        return await self._build_result(thread_id)

    async def close(self) -> None:
        """MCP 클라이언트와 체크포인트 저장소를 닫습니다"""
        if self.mcp_client:
            await self.mcp_client.close()
        if self.checkpointer is not None and hasattr(self.checkpointer, "close"):
            self.checkpointer.close()


async def create_research_executor(
    settings: Optional[DeerSettings] = None,
    config: Optional[DeerConfig] = None,
    mcp_client: Optional[EnhancedMCPClient] = None,
    checkpointer=None,
    chat_model=None,
    plan_model=None,
    agent_factory=None,
) -> ResearchWorkflowExecutor:
    """설정을 읽어 연구 워크플로우 실행기를 생성합니다

    주어지지 않은 구성 요소는 설정으로부터 만듭니다.

    Raises:
        ValueError: 설정이 잘못된 경우
    """
    settings = settings or get_settings()
    config = config or load_settings_deer_config(settings)

    if mcp_client is None:
        mcp_client = EnhancedMCPClient()
        await mcp_client.initialize(config)

    chat_model = chat_model or get_chat_llm(settings, config)
    plan_model = plan_model or get_plan_llm(settings, config)
    checkpointer = checkpointer or create_checkpointer(settings)

    node_options = {}
    if agent_factory is not None:
        node_options["agent_factory"] = agent_factory
    nodes = ResearchNodes(
        chat_model=chat_model,
        plan_model=plan_model,
        mcp_client=mcp_client,
        prompts=PromptLoader(settings.prompt_dir),
        **node_options,
    )
    workflow = build_research_graph(nodes, checkpointer=checkpointer)

    defaults = {
        "auto_accepted_plan": settings.auto_accepted_plan,
        "enable_background_investigation": settings.enable_background_investigation,
        "max_plan_iterations": config.setting.max_plan_iterations,
        "max_step_num": config.setting.max_step_num,
    }
    logger.info(f"연구 워크플로우 실행기 생성 완료: {defaults}")
    return ResearchWorkflowExecutor(workflow, defaults=defaults, mcp_client=mcp_client, checkpointer=checkpointer)
