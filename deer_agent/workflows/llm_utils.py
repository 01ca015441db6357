"""LLM 유틸리티 모듈

OpenAI 호환 채팅 모델 인스턴스 생성을 담당합니다.
모델 설정은 deer.yaml의 model 섹션을 기본으로 하고, 환경변수(DeerSettings)로 덮어씁니다.
"""

import logging
from typing import Any, Dict

from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from ..config.deer_config import DeerConfig
from ..config.env_config import DeerSettings
from ..models import Plan

logger = logging.getLogger(__name__)


def resolve_model_config(settings: DeerSettings, config: DeerConfig) -> Dict[str, Any]:
    """환경변수와 deer.yaml을 병합한 모델 설정을 반환합니다

    Raises:
        ValueError: API 키가 어디에도 설정되지 않은 경우
    """
    overrides = settings.get_openai_overrides()
    resolved = {
        "model": overrides.get("model", config.model.default_model),
        "api_key": overrides.get("api_key", config.model.api_key),
        "base_url": overrides.get("base_url", config.model.base_url),
        "temperature": settings.openai_temperature,
        "max_tokens": settings.openai_max_tokens,
    }
    if not resolved["api_key"]:
        raise ValueError("API 키가 설정되지 않았습니다. OPENAI_API_KEY 또는 deer.yaml의 model.api_key를 설정하세요")
    return resolved


def get_chat_llm(settings: DeerSettings, config: DeerConfig) -> BaseChatModel:
    """에이전트용 ChatOpenAI 인스턴스를 생성합니다

    Raises:
        ValueError: 모델 설정이 잘못된 경우
    """
    model_config = resolve_model_config(settings, config)
    try:
        llm = ChatOpenAI(
            model=model_config["model"],
            temperature=model_config["temperature"],
            max_tokens=model_config["max_tokens"],
            api_key=model_config["api_key"],
            base_url=model_config["base_url"],
        )
    except Exception as e:
        raise ValueError(f"LLM 초기화 실패: {e}")

    logger.info(
        f"채팅 모델 초기화 완료 - "
        f"모델: {model_config['model']}, "
        f"온도: {model_config['temperature']}, "
        f"최대토큰: {model_config['max_tokens']}"
    )
    return llm


def get_plan_llm(settings: DeerSettings, config: DeerConfig) -> Runnable:
    """플래너용 모델을 생성합니다

    Plan JSON 스키마를 response_format으로 지정하여 구조화된 출력을 요청합니다.
    """
    llm = get_chat_llm(settings, config)
    return llm.bind(
        response_format={
            "type": "json_schema",
            "json_schema": {
                "name": "plan",
                "strict": False,
                "schema": Plan.model_json_schema(),
            },
        }
    )


def get_json_llm(settings: DeerSettings, config: DeerConfig) -> Runnable:
    """JSON 객체만 출력하도록 지정한 모델을 생성합니다 (plan-execute용)"""
    llm = get_chat_llm(settings, config)
    return llm.bind(response_format={"type": "json_object"})
