"""deer 설정 파일 관리 모듈

MCP 서버 목록, 기본 모델, 계획 반복 제한을 담은 deer.yaml 파일을 읽어
타입이 있는 설정 객체로 변환합니다.

    mcp:
      servers:
        tavily:
          command: npx
          args: ["-y", "tavily-mcp"]
          env: {TAVILY_API_KEY: "..."}
        remote:
          url: http://localhost:8931/sse
          headers: ["Authorization: Bearer ..."]
    model:
      default_model: gpt-4.1
      api_key: sk-...
      base_url: https://api.openai.com/v1
    setting:
      max_plan_iterations: 1
      max_step_num: 3
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Any

import yaml

logger = logging.getLogger(__name__)

TRANSPORT_STDIO = "stdio"
TRANSPORT_SSE = "sse"


def parse_headers(headers: Optional[List[str]]) -> Dict[str, str]:
    """"Key: Value" 형식의 헤더 목록을 딕셔너리로 변환합니다

    첫 번째 ':'를 기준으로 나누며, 형식이 맞지 않는 항목은 무시합니다.
    """
    parsed: Dict[str, str] = {}
    for header in headers or []:
        key, sep, value = header.partition(":")
        if not sep:
            logger.warning(f"잘못된 헤더 형식 무시: {header!r}")
            continue
        parsed[key.strip()] = value.strip()
    return parsed


@dataclass
class MCPServerConfig:
    """단일 MCP 서버의 설정을 담는 데이터 클래스

    url이 있으면 SSE 서버, 없으면 stdio 서버로 취급합니다.
    """
    name: str
    command: str = ""
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None
    headers: List[str] = field(default_factory=list)

    def __post_init__(self):
        """설정 유효성 검증"""
        if not isinstance(self.args, list):
            raise ValueError(f"서버 '{self.name}'의 args는 리스트여야 합니다")
        if self.transport == TRANSPORT_STDIO and not self.command.strip():
            raise ValueError(f"서버 '{self.name}'의 command가 비어있습니다")

    @property
    def transport(self) -> str:
        """서버 전송 방식 (stdio 또는 sse)"""
        return TRANSPORT_SSE if self.url else TRANSPORT_STDIO

    def to_connection(self) -> Dict[str, Any]:
        """MultiServerMCPClient가 사용하는 연결 설정으로 변환합니다"""
        if self.transport == TRANSPORT_SSE:
            connection: Dict[str, Any] = {"transport": TRANSPORT_SSE, "url": self.url}
            headers = parse_headers(self.headers)
            if headers:
                connection["headers"] = headers
            return connection

        connection = {
            "transport": TRANSPORT_STDIO,
            "command": self.command,
            "args": list(self.args),
        }
        if self.env:
            connection["env"] = dict(self.env)
        return connection


@dataclass
class ModelConfig:
    """기본 채팅 모델 설정"""
    default_model: str = "gpt-4.1"
    api_key: str = ""
    base_url: Optional[str] = None


@dataclass
class SettingConfig:
    """계획 반복 제한 설정"""
    max_plan_iterations: int = 1
    max_step_num: int = 3

    def __post_init__(self):
        if self.max_plan_iterations < 1:
            raise ValueError(f"max_plan_iterations는 1 이상이어야 합니다. 현재 값: {self.max_plan_iterations}")
        if self.max_step_num < 1:
            raise ValueError(f"max_step_num은 1 이상이어야 합니다. 현재 값: {self.max_step_num}")


@dataclass
class DeerConfig:
    """deer.yaml 전체 설정"""
    servers: Dict[str, MCPServerConfig] = field(default_factory=dict)
    model: ModelConfig = field(default_factory=ModelConfig)
    setting: SettingConfig = field(default_factory=SettingConfig)

    def get_server_names(self) -> List[str]:
        """등록된 모든 서버 이름을 반환합니다"""
        return list(self.servers.keys())

    def get_connections(self) -> Dict[str, Dict[str, Any]]:
        """모든 서버의 연결 설정을 반환합니다"""
        return {name: server.to_connection() for name, server in self.servers.items()}


class ConfigReader(ABC):
    """설정 읽기 인터페이스"""

    @abstractmethod
    def read_config(self, source: str) -> Dict[str, Any]:
        """설정 소스에서 원시 설정 딕셔너리를 읽어옵니다"""
        pass


class YAMLConfigReader(ConfigReader):
    """YAML 파일에서 설정을 읽는 구현체"""

    def read_config(self, source: str) -> Dict[str, Any]:
        config_path = Path(source)
        if not config_path.exists():
            raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {source}")

        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}


class JSONConfigReader(ConfigReader):
    """JSON 파일에서 설정을 읽는 구현체

    deer.yaml과 같은 구조 또는 {"mcpServers": {...}} 구조를 지원합니다.
    """

    def read_config(self, source: str) -> Dict[str, Any]:
        config_path = Path(source)
        if not config_path.exists():
            raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {source}")

        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if "mcpServers" in data:
            data = dict(data)
            data["mcp"] = {"servers": data.pop("mcpServers")}
        return data


class DeerConfigManager:
    """deer 설정 관리자

    ConfigReader 추상화에 의존하여 설정 소스와 무관하게 동작합니다.
    """

    def __init__(self, config_reader: ConfigReader):
        self._config_reader = config_reader
        self._config: Optional[DeerConfig] = None

    def load(self, config_path: str) -> DeerConfig:
        """설정 파일에서 deer 설정을 로드합니다

        Args:
            config_path: 설정 파일 경로

        Returns:
            DeerConfig 객체

        Raises:
            ValueError: 파일이 없거나 형식이 잘못되었을 때
        """
        try:
            raw = self._config_reader.read_config(config_path)
        except (FileNotFoundError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValueError(f"설정 파일 읽기 실패: {e}")

        if not isinstance(raw, dict):
            raise ValueError(f"설정 파일 읽기 실패: 최상위 항목이 매핑이 아닙니다 ({config_path})")

        mcp_section = raw.get("mcp") or {}
        servers_data = mcp_section.get("servers") or {}
        servers = {
            name: self._create_server_config(name, server or {})
            for name, server in servers_data.items()
        }

        model_data = raw.get("model") or {}
        setting_data = raw.get("setting") or {}
        self._config = DeerConfig(
            servers=servers,
            model=ModelConfig(
                default_model=model_data.get("default_model") or ModelConfig.default_model,
                api_key=model_data.get("api_key") or "",
                base_url=model_data.get("base_url"),
            ),
            setting=SettingConfig(
                max_plan_iterations=int(setting_data.get("max_plan_iterations", 1)),
                max_step_num=int(setting_data.get("max_step_num", 3)),
            ),
        )
        logger.info(f"deer 설정 로드 완료: 서버 {self._config.get_server_names()}")
        return self._config

    def _create_server_config(self, name: str, config: Dict[str, Any]) -> MCPServerConfig:
        """개별 서버 설정 객체를 생성합니다"""
        return MCPServerConfig(
            name=name,
            command=config.get('command', '') or '',
            args=config.get('args', []) or [],
            env=config.get('env', {}) or {},
            url=config.get('url') or None,
            headers=config.get('headers', []) or [],
        )

    def get_config(self) -> Optional[DeerConfig]:
        """마지막으로 로드한 설정을 반환합니다"""
        return self._config

    def get_server(self, name: str) -> Optional[MCPServerConfig]:
        """서버 이름으로 설정을 조회합니다"""
        if self._config is None:
            return None
        return self._config.servers.get(name)


def create_config_manager(config_path: Optional[str] = None) -> DeerConfigManager:
    """파일 확장자에 맞는 설정 관리자를 생성합니다

    .json 파일은 JSON 리더를, 그 외에는 YAML 리더를 사용합니다.
    """
    if config_path and Path(config_path).suffix == ".json":
        return DeerConfigManager(JSONConfigReader())
    return DeerConfigManager(YAMLConfigReader())


def load_deer_config(config_path: str) -> DeerConfig:
    """설정 파일을 읽어 DeerConfig를 반환하는 편의 함수"""
    return create_config_manager(config_path).load(config_path)


def load_settings_deer_config(settings) -> DeerConfig:
    """환경 설정(DeerSettings)이 가리키는 deer 설정 파일을 확인하고 읽습니다

    Raises:
        ValueError: 파일이 없거나 YAML/JSON 파일이 아닌 경우
    """
    config_path = settings.get_deer_config_path()
    if not settings.validate_deer_config_file():
        raise ValueError(f"deer 설정 파일이 없거나 YAML/JSON 파일이 아닙니다: {config_path}")
    return load_deer_config(config_path)
