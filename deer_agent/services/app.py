"""FastAPI deer 연구 애플리케이션

deer 연구 워크플로우를 HTTP API와 SSE 스트림으로 제공하는 웹 애플리케이션입니다.
"""

import logging
from typing import Optional, Dict, Any, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..config.env_config import DeerSettings, get_settings
from ..streaming import create_error_message
from ..workflows import ResearchWorkflowExecutor, create_research_executor


logger = logging.getLogger(__name__)


class ResearchOptions(BaseModel):
    """연구 실행 옵션 (비어 있으면 설정 기본값 사용)"""
    locale: Optional[str] = None
    auto_accepted_plan: Optional[bool] = None
    enable_background_investigation: Optional[bool] = None
    max_plan_iterations: Optional[int] = None
    max_step_num: Optional[int] = None


class ResearchRequest(ResearchOptions):
    """연구 요청 모델"""
    message: str
    thread_id: Optional[str] = None


class FeedbackRequest(BaseModel):
    """계획 피드백 요청 모델"""
    feedback: str


class ChatStreamRequest(ResearchOptions):
    """스트리밍 요청 모델

    interrupt_feedback이 있으면 thread_id의 중단된 실행을 재개합니다.
    """
    message: str = ""
    thread_id: Optional[str] = None
    interrupt_feedback: Optional[str] = None


class ResearchResponse(BaseModel):
    """연구 응답 모델"""
    success: bool
    thread_id: str
    status: str
    response: str = ""
    plan: Optional[Dict[str, Any]] = None
    interrupt: Optional[Any] = None
    error: Optional[str] = None


class DeerResearchApp:
    """deer 연구 애플리케이션 클래스

    FastAPI 애플리케이션 라이프사이클과 연구 실행기를 관리합니다.
    """

    def __init__(self, settings: Optional[DeerSettings] = None,
                 executor: Optional[ResearchWorkflowExecutor] = None):
        """애플리케이션 초기화

        Args:
            settings: 환경변수 설정 (없으면 get_settings())
            executor: 미리 구성된 실행기 (주어지면 startup에서 생성하지 않음)
        """
        self.settings = settings
        self.executor = executor
        self._owns_executor = executor is None
        self._logger = logging.getLogger(__name__)

    async def startup(self):
        """애플리케이션 시작 시 초기화 작업"""
        if self.executor is not None:
            return
        try:
            self._logger.info("deer 연구 애플리케이션 시작")
            self.settings = self.settings or get_settings()
            self.executor = await create_research_executor(settings=self.settings)
            self._logger.info("deer 연구 애플리케이션 시작 완료")
        except Exception as e:
            self._logger.error(f"애플리케이션 시작 오류: {e}")
            raise

    async def shutdown(self):
        """애플리케이션 종료 시 정리 작업 (MCP 클라이언트 종료, 체크포인트 flush)"""
        if self.executor is None or not self._owns_executor:
            return
        try:
            self._logger.info("deer 연구 애플리케이션 종료")
            await self.executor.close()
            self._logger.info("MCP 클라이언트 및 체크포인트 저장소 종료 완료")
        except Exception as e:
            self._logger.error(f"애플리케이션 종료 오류: {e}")

    def require_executor(self) -> ResearchWorkflowExecutor:
        if self.executor is None:
            raise HTTPException(status_code=503, detail="서비스 초기화 중입니다")
        return self.executor


def _options(request: ResearchOptions) -> Dict[str, Any]:
    return {k: v for k, v in request.model_dump(include=set(ResearchOptions.model_fields)).items() if v is not None}


def _to_response(result: Dict[str, Any]) -> ResearchResponse:
    if not result.get("success"):
        raise HTTPException(status_code=500, detail=result.get("error", "알 수 없는 오류"))
    return ResearchResponse(**result)


def create_app(app_instance: Optional[DeerResearchApp] = None) -> FastAPI:
    """FastAPI 애플리케이션 생성 팩토리 함수

    Args:
        app_instance: 사용할 애플리케이션 인스턴스 (테스트에서 실행기 주입용)

    Returns:
        설정된 FastAPI 애플리케이션
    """
    deer_app = app_instance or DeerResearchApp()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """FastAPI 라이프사이클 관리"""
        await deer_app.startup()
        yield
        await deer_app.shutdown()

    app = FastAPI(
        title="deer 연구 에이전트",
        description="코디네이터-플래너-리서치 팀 기반 LangGraph 연구 워크플로우",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.deer_app = deer_app

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # 프로덕션에서는 제한 필요
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        """헬스 체크 엔드포인트"""
        executor = deer_app.executor
        if executor is None:
            return {"status": "initializing", "message": "서비스 초기화 중입니다"}

        mcp_client = executor.mcp_client
        return {
            "status": "healthy",
            "connected_servers": mcp_client.get_server_names() if mcp_client else [],
            "available_tools_count": len(mcp_client.get_tools()) if mcp_client else 0,
        }

    @app.get("/api/tools")
    async def get_tools():
        """서버별 사용 가능한 도구 목록 조회"""
        executor = deer_app.require_executor()
        if executor.mcp_client is None:
            return {"total_tools": 0, "tools_by_server": {}}
        tools_info = executor.mcp_client.get_tools_info()
        return {
            "total_tools": sum(len(tools) for tools in tools_info.values()),
            "tools_by_server": tools_info,
        }

    @app.post("/api/research", response_model=ResearchResponse)
    async def research(request: ResearchRequest):
        """연구 요청 실행 (계획 검토가 필요하면 status=interrupted로 반환)"""
        executor = deer_app.require_executor()
        result = await executor.execute(request.message, thread_id=request.thread_id, **_options(request))
        return _to_response(result)

    @app.get("/api/research/{thread_id}", response_model=ResearchResponse)
    async def research_state(thread_id: str):
        """연구 스레드의 현재 상태 조회"""
        executor = deer_app.require_executor()
        try:
            result = await executor.get_state(thread_id)
        except Exception as e:
            logger.error(f"상태 조회 오류: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        if result is None:
            raise HTTPException(status_code=404, detail=f"연구 스레드를 찾을 수 없습니다: {thread_id}")
        return _to_response(result)

    @app.post("/api/research/{thread_id}/feedback", response_model=ResearchResponse)
    async def research_feedback(thread_id: str, request: FeedbackRequest):
        """중단된 연구에 계획 피드백을 주고 재개"""
        executor = deer_app.require_executor()
        result = await executor.resume(thread_id, request.feedback)
        return _to_response(result)

    @app.post("/api/chat/stream")
    async def chat_stream(request: ChatStreamRequest):
        """SSE 스트리밍 연구 엔드포인트"""
        executor = deer_app.require_executor()
        if not request.message.strip() and request.interrupt_feedback is None:
            raise HTTPException(status_code=400, detail="message 또는 interrupt_feedback이 필요합니다")
        if request.interrupt_feedback is not None and not request.thread_id:
            raise HTTPException(status_code=400, detail="재개하려면 thread_id가 필요합니다")

        logger.info(f"스트리밍 요청 - 스레드: {request.thread_id}, 피드백: {request.interrupt_feedback}")

        async def event_generator():
            try:
                async for message in executor.stream(
                    message=request.message,
                    thread_id=request.thread_id,
                    feedback=request.interrupt_feedback,
                    **_options(request),
                ):
                    yield message.to_sse_format()
            except Exception as e:
                logger.error(f"SSE 스트림 오류 - 스레드: {request.thread_id}, 오류: {e}")
                yield create_error_message(str(e), request.thread_id or "unknown").to_sse_format()

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no"  # Nginx 버퍼링 비활성화
            }
        )

    return app
