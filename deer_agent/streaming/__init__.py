"""스트리밍 모듈

연구 워크플로우 실행을 SSE(Server-Sent Events) 메시지로 전달하기 위한 타입을 제공합니다.
"""

from .message_types import (
    StreamMessageType,
    StreamMessage,
    create_session_start_message,
    create_agent_update_message,
    create_message_chunk,
    create_tool_call_message,
    create_plan_message,
    create_interrupt_message,
    create_final_report_message,
    create_error_message,
    create_session_end_message
)

__all__ = [
    'StreamMessageType',
    'StreamMessage',
    'create_session_start_message',
    'create_agent_update_message',
    'create_message_chunk',
    'create_tool_call_message',
    'create_plan_message',
    'create_interrupt_message',
    'create_final_report_message',
    'create_error_message',
    'create_session_end_message'
]
