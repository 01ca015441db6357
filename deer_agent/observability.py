"""로깅 및 추적 설정

애플리케이션 로깅, MCP 도구 호출(JSON-RPC) 전용 로거,
그리고 선택적인 Phoenix 기반 LangChain 추적을 설정합니다.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
JSON_RPC_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", json_rpc_log_file: Optional[str] = None) -> None:
    """기본 로깅과 JSON-RPC 로거를 설정합니다

    Args:
        level: 로그 레벨 이름
        json_rpc_log_file: 지정하면 MCP 도구 호출 기록을 이 파일에도 남김
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)

    # JSON-RPC 호출 기록을 위한 별도 로거
    json_rpc_logger = logging.getLogger('json_rpc')
    json_rpc_logger.setLevel(logging.INFO)

    if json_rpc_log_file and not json_rpc_logger.handlers:  # 핸들러 중복 추가 방지
        log_path = Path(json_rpc_log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(JSON_RPC_LOG_FORMAT))
        json_rpc_logger.addHandler(file_handler)


def setup_tracing(enabled: bool, project_name: str = "deer_agent_traces") -> Optional[str]:
    """Phoenix를 사용한 LangChain 추적을 설정합니다

    Args:
        enabled: 추적 활성화 여부 (PHOENIX_ENABLED)
        project_name: Phoenix 프로젝트 이름

    Returns:
        Phoenix UI 주소 (비활성화 또는 실패 시 None)
    """
    if not enabled:
        logger.info("Phoenix 추적 기능이 비활성화되었습니다. PHOENIX_ENABLED=true로 설정하여 활성화할 수 있습니다.")
        return None

    logger.info("Phoenix 추적 기능이 활성화되었습니다.")
    try:
        import phoenix as px
        from openinference.instrumentation.langchain import LangChainInstrumentor
        from phoenix.otel import register as phoenix_register  # 'register' 이름 충돌 방지
    except ImportError:
        logger.warning("Phoenix 관련 패키지를 찾을 수 없어 LangChain 추적을 시작할 수 없습니다. "
                       "'arize-phoenix'와 'openinference-instrumentation-langchain'을 설치하세요.")
        return None

    try:
        phoenix_session = px.launch_app()
        logger.info(f"Phoenix UI가 다음 주소에서 실행 중입니다: {phoenix_session.url}")

        tracer_provider = phoenix_register(project_name=project_name)
        LangChainInstrumentor(tracer_provider=tracer_provider).instrument(skip_dep_check=True)
        logger.info("Phoenix를 사용하여 LangChain 계측 완료")
        return phoenix_session.url
    except Exception as e:
        logger.error(f"Phoenix 초기화 또는 LangChain 계측 중 오류 발생: {e}")
        return None
