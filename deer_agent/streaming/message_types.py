"""SSE 스트리밍 메시지 타입 정의

연구 워크플로우 실행 중에 SSE(Server-Sent Events)로 전송되는 메시지 타입들을 정의합니다.
각 메시지는 JSON 형태로 직렬화되어 클라이언트에게 전송됩니다.
"""

from enum import Enum
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
from datetime import datetime
import json


class StreamMessageType(Enum):
    """스트림 메시지 타입 열거형"""
    SESSION_START = "session_start"      # 실행 시작
    AGENT_UPDATE = "agent_update"        # 에이전트 실행 완료 및 핸드오프
    MESSAGE_CHUNK = "message_chunk"      # 모델 토큰 단위 출력
    TOOL_CALL = "tool_call"              # 도구 호출
    PLAN = "plan"                        # 플래너가 만든 계획
    INTERRUPT = "interrupt"              # 사람 피드백 대기
    FINAL_REPORT = "final_report"        # 최종 보고서
    ERROR = "error"                      # 오류 발생
    SESSION_END = "session_end"          # 실행 종료


@dataclass
class StreamMessage:
    """SSE 스트림 메시지 데이터 클래스

    session_id에는 연구 스레드 ID가 들어갑니다.
    """
    type: StreamMessageType
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    timestamp: Optional[str] = None

    def __post_init__(self):
        """초기화 후 타임스탬프 자동 설정"""
        if self.timestamp is None:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        data = asdict(self)
        data["type"] = self.type.value  # Enum을 문자열로 변환
        return data

    def to_json(self) -> str:
        """JSON 문자열로 변환"""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def to_sse_format(self) -> str:
        """SSE 형식으로 변환"""
        return f"data: {self.to_json()}\n\n"


def create_session_start_message(session_id: str) -> StreamMessage:
    """실행 시작 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.SESSION_START,
        content="연구 실행이 시작되었습니다",
        session_id=session_id,
        metadata={"action": "start"}
    )


def create_agent_update_message(agent: str, goto: Optional[str], session_id: str) -> StreamMessage:
    """에이전트 실행 완료 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.AGENT_UPDATE,
        content=f"{agent} 완료",
        session_id=session_id,
        metadata={"agent": agent, "goto": goto}
    )


def create_message_chunk(content: str, session_id: str, agent: Optional[str] = None) -> StreamMessage:
    """토큰 단위 출력 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.MESSAGE_CHUNK,
        content=content,
        session_id=session_id,
        metadata={"agent": agent}
    )


def create_tool_call_message(tool: str, session_id: str, agent: Optional[str] = None, arguments: Optional[Any] = None) -> StreamMessage:
    """도구 호출 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.TOOL_CALL,
        content=f"{tool} 호출 중",
        session_id=session_id,
        metadata={
            "tool": tool,
            "agent": agent,
            "arguments": arguments or {}
        }
    )


def create_plan_message(plan: Dict[str, Any], session_id: str) -> StreamMessage:
    """계획 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.PLAN,
        content=plan.get("title", ""),
        session_id=session_id,
        metadata={"plan": plan}
    )


def create_interrupt_message(value: Any, session_id: str) -> StreamMessage:
    """사람 피드백 대기 메시지 생성"""
    content = value.get("message") if isinstance(value, dict) else str(value)
    return StreamMessage(
        type=StreamMessageType.INTERRUPT,
        content=content,
        session_id=session_id,
        metadata={"interrupt": value, "options": ["accepted", "edit_plan"]}
    )


def create_final_report_message(content: str, session_id: str) -> StreamMessage:
    """최종 보고서 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.FINAL_REPORT,
        content=content,
        session_id=session_id,
        metadata={"final": True}
    )


def create_error_message(error: str, session_id: str) -> StreamMessage:
    """오류 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.ERROR,
        content=f"오류가 발생했습니다: {error}",
        session_id=session_id,
        metadata={"error": error}
    )


def create_session_end_message(session_id: str, status: str = "completed") -> StreamMessage:
    """실행 종료 메시지 생성"""
    return StreamMessage(
        type=StreamMessageType.SESSION_END,
        content="연구 실행이 종료되었습니다",
        session_id=session_id,
        metadata={"action": "end", "status": status}
    )
