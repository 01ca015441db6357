"""deer-agent 환경변수 설정 모듈

모든 환경변수를 중앙에서 관리하고 타입 검증을 제공합니다.
YAML 설정 파일(deer.yaml)의 모델 설정은 여기서 지정한 환경변수로 덮어쓸 수 있습니다.
"""

import os
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, validator
from pydantic_settings import BaseSettings


CHECKPOINT_BACKENDS = ("memory", "file")


class DeerSettings(BaseSettings):
    """deer-agent 환경변수 설정 클래스

    Pydantic BaseSettings를 사용하여 환경변수를 타입 안전하게 관리합니다.
    모든 환경변수는 이 클래스를 통해 접근해야 합니다.
    """

    # OpenAI 호환 API 설정 (비어 있으면 deer.yaml의 model 섹션 사용)
    openai_api_key: str = Field(default="", description="OpenAI API 키")
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI 호환 API 주소")
    openai_model: Optional[str] = Field(default=None, description="사용할 모델명")
    openai_temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="모델 온도 (0.0-2.0)")
    openai_max_tokens: int = Field(default=4096, gt=0, description="최대 토큰 수")

    # deer 설정 파일 (MCP 서버, 모델, 반복 제한)
    deer_config: str = Field(default="./conf/deer.yaml", description="deer YAML 설정 파일 경로")
    prompt_dir: Optional[str] = Field(default=None, description="에이전트 프롬프트 덮어쓰기 디렉토리")

    # 체크포인트 설정
    checkpoint_backend: str = Field(default="memory", description="체크포인트 저장소 (memory/file)")
    checkpoint_dir: str = Field(default="./checkpoints", description="파일 체크포인트 디렉토리")

    # 워크플로우 기본 동작
    auto_accepted_plan: bool = Field(default=False, description="계획 자동 승인 여부")
    enable_background_investigation: bool = Field(default=False, description="계획 전 배경 조사 여부")

    # 로깅 및 모니터링
    log_level: str = Field(default="INFO", description="로그 레벨")
    json_rpc_log_file: Optional[str] = Field(default=None, description="MCP 도구 호출 로그 파일")
    phoenix_enabled: bool = Field(default=False, description="Phoenix 모니터링 활성화 여부")

    class Config:
        """Pydantic 설정"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False  # 환경변수 대소문자 구분 안함

    @validator("openai_temperature")
    def validate_temperature(cls, v):
        """온도 값 검증"""
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"온도는 0.0-2.0 범위여야 합니다. 현재 값: {v}")
        return v

    @validator("openai_max_tokens")
    def validate_max_tokens(cls, v):
        """최대 토큰 수 검증"""
        if v <= 0:
            raise ValueError(f"최대 토큰 수는 양수여야 합니다. 현재 값: {v}")
        return v

    @validator("checkpoint_backend")
    def validate_checkpoint_backend(cls, v):
        """체크포인트 저장소 종류 검증"""
        v = v.strip().lower()
        if v not in CHECKPOINT_BACKENDS:
            raise ValueError(f"체크포인트 저장소는 {CHECKPOINT_BACKENDS} 중 하나여야 합니다. 현재 값: {v}")
        return v

    @validator("deer_config")
    def validate_deer_config_path(cls, v):
        """deer 설정 파일 경로 검증"""
        # 상대 경로인 경우 절대 경로로 변환
        if not os.path.isabs(v):
            v = os.path.abspath(v)
        return v

    def get_deer_config_path(self) -> str:
        """deer 설정 파일의 절대 경로 반환"""
        return self.deer_config

    def validate_deer_config_file(self) -> bool:
        """deer 설정 파일이 유효한지 확인

        Returns:
            파일이 존재하고 YAML/JSON 확장자이면 True, 아니면 False
        """
        path = Path(self.deer_config)
        return path.is_file() and path.suffix in (".yaml", ".yml", ".json")

    def get_openai_overrides(self) -> dict:
        """YAML 모델 설정을 덮어쓸 OpenAI 설정을 딕셔너리로 반환

        값이 비어 있는 항목은 포함하지 않습니다.

        Returns:
            OpenAI 설정 딕셔너리
        """
        overrides = {
            "api_key": self.openai_api_key,
            "base_url": self.openai_base_url,
            "model": self.openai_model,
        }
        return {k: v for k, v in overrides.items() if v}


@lru_cache()
def get_settings() -> DeerSettings:
    """환경변수 설정 인스턴스를 반환하는 싱글톤 함수

    lru_cache 데코레이터를 사용하여 한 번만 로드하고 재사용합니다.

    Returns:
        DeerSettings 인스턴스

    Raises:
        ValueError: 환경변수 값이 잘못된 경우
    """
    try:
        return DeerSettings()
    except Exception as e:
        raise ValueError(f"환경변수 설정 로드 실패: {e}")


def reload_settings() -> DeerSettings:
    """설정을 다시 로드합니다 (테스트용)

    캐시를 클리어하고 새로운 설정 인스턴스를 생성합니다.
    """
    get_settings.cache_clear()
    return get_settings()
