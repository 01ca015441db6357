"""deer-agent 설정 패키지

환경변수 설정과 deer.yaml(MCP 서버, 모델, 반복 제한) 설정 모듈을 포함합니다.
"""

# 환경변수 설정 모듈
from .env_config import (
    DeerSettings,
    get_settings,
    reload_settings,
)

# deer.yaml 설정 모듈
from .deer_config import (
    MCPServerConfig,
    ModelConfig,
    SettingConfig,
    DeerConfig,
    ConfigReader,
    YAMLConfigReader,
    JSONConfigReader,
    DeerConfigManager,
    create_config_manager,
    load_deer_config,
    load_settings_deer_config,
    parse_headers,
)

__all__ = [
    # 환경변수 설정
    "DeerSettings",
    "get_settings",
    "reload_settings",
    # deer.yaml 설정
    "MCPServerConfig",
    "ModelConfig",
    "SettingConfig",
    "DeerConfig",
    "ConfigReader",
    "YAMLConfigReader",
    "JSONConfigReader",
    "DeerConfigManager",
    "create_config_manager",
    "load_deer_config",
    "load_settings_deer_config",
    "parse_headers",
]
