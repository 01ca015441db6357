#!/usr/bin/env python3
"""deer 연구 에이전트 서버 메인 실행 스크립트

FastAPI 서버를 시작하여 deer 연구 워크플로우 API를 제공합니다.
"""

import asyncio
import logging
import os

import uvicorn
from dotenv import load_dotenv

from deer_agent.config import get_settings
from deer_agent.observability import setup_logging, setup_tracing
from deer_agent.services import create_app

# .env 파일 로드 (애플리케이션 시작 시)
load_dotenv()

settings = get_settings()
setup_logging(settings.log_level, settings.json_rpc_log_file)
setup_tracing(settings.phoenix_enabled)

logger = logging.getLogger(__name__)

# FastAPI 앱 인스턴스 생성 (uvicorn이 찾을 수 있도록 모듈 레벨에서 정의)
app = create_app()


def main():
    """메인 함수: FastAPI 서버 시작"""
    try:
        logger.info("deer 연구 에이전트 서버 시작")

        config = uvicorn.Config(
            app=app,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=settings.log_level.lower(),
            access_log=True
        )

        server = uvicorn.Server(config)
        asyncio.run(server.serve())

    except KeyboardInterrupt:
        logger.info("서버 종료 (Ctrl+C)")
    except Exception as e:
        logger.error(f"서버 실행 오류: {e}")
        raise


if __name__ == "__main__":
    main()
