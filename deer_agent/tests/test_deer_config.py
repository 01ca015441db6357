"""설정 모듈 테스트

deer.yaml / JSON 설정 로딩, 환경변수 설정, 모델 설정 병합을 검증합니다.
"""

import json

import pytest

from deer_agent.config import (
    DeerConfig,
    DeerSettings,
    MCPServerConfig,
    ModelConfig,
    SettingConfig,
    create_config_manager,
    load_deer_config,
    load_settings_deer_config,
    parse_headers,
)
from deer_agent.config.deer_config import JSONConfigReader, YAMLConfigReader
from deer_agent.workflows.llm_utils import resolve_model_config

DEER_YAML = """
mcp:
  servers:
    tavily:
      command: npx
      args: ["-y", "tavily-mcp"]
      env:
        TAVILY_API_KEY: tvly-test
    remote:
      url: http://localhost:8931/sse
      headers: ["Authorization: Bearer abc", "X-Trace: on: off"]
model:
  default_model: deepseek-chat
  api_key: yaml-key
  base_url: https://api.example.com/v1
setting:
  max_plan_iterations: 2
  max_step_num: 5
"""


@pytest.fixture
def deer_yaml(tmp_path):
    path = tmp_path / "deer.yaml"
    path.write_text(DEER_YAML, encoding="utf-8")
    return path


class TestDeerConfig:
    """deer.yaml 로딩 테스트"""

    def test_load_yaml(self, deer_yaml):
        config = load_deer_config(str(deer_yaml))

        assert config.get_server_names() == ["tavily", "remote"]
        assert config.model.default_model == "deepseek-chat"
        assert config.model.api_key == "yaml-key"
        assert config.setting.max_plan_iterations == 2
        assert config.setting.max_step_num == 5

    def test_stdio_and_sse_connections(self, deer_yaml):
        connections = load_deer_config(str(deer_yaml)).get_connections()

        assert connections["tavily"] == {
            "transport": "stdio",
            "command": "npx",
            "args": ["-y", "tavily-mcp"],
            "env": {"TAVILY_API_KEY": "tvly-test"},
        }
        assert connections["remote"] == {
            "transport": "sse",
            "url": "http://localhost:8931/sse",
            "headers": {"Authorization": "Bearer abc", "X-Trace": "on: off"},
        }

    def test_defaults_when_sections_missing(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("mcp: {}\n", encoding="utf-8")

        config = load_deer_config(str(path))

        assert config.servers == {}
        assert config.model.default_model == ModelConfig.default_model
        assert config.setting == SettingConfig()

    def test_json_mcp_servers_format(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text(json.dumps({
            "mcpServers": {"python": {"command": "python", "args": ["server.py"]}}
        }), encoding="utf-8")

        manager = create_config_manager(str(path))
        config = manager.load(str(path))

        assert isinstance(manager._config_reader, JSONConfigReader)
        assert config.get_server_names() == ["python"]
        assert manager.get_server("python").command == "python"
        assert manager.get_server("missing") is None

    def test_yaml_reader_selected_by_default(self):
        assert isinstance(create_config_manager("conf/deer.yaml")._config_reader, YAMLConfigReader)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ValueError, match="설정 파일 읽기 실패"):
            load_deer_config(str(tmp_path / "nope.yaml"))

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="매핑"):
            load_deer_config(str(path))

    def test_stdio_server_requires_command(self):
        with pytest.raises(ValueError, match="command"):
            MCPServerConfig(name="broken")

    def test_invalid_setting_values(self):
        with pytest.raises(ValueError):
            SettingConfig(max_plan_iterations=0)
        with pytest.raises(ValueError):
            SettingConfig(max_step_num=0)

    def test_parse_headers_skips_invalid(self):
        assert parse_headers(["A: 1", "broken", " B :2 "]) == {"A": "1", "B": "2"}
        assert parse_headers(None) == {}


class TestDeerSettings:
    """환경변수 설정 테스트"""

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
        monkeypatch.setenv("CHECKPOINT_BACKEND", "FILE")
        monkeypatch.setenv("AUTO_ACCEPTED_PLAN", "true")

        settings = DeerSettings(_env_file=None)

        assert settings.openai_model == "gpt-test"
        assert settings.checkpoint_backend == "file"
        assert settings.auto_accepted_plan is True

    def test_invalid_checkpoint_backend(self):
        with pytest.raises(ValueError):
            DeerSettings(_env_file=None, checkpoint_backend="redis")

    def test_deer_config_path_is_absolute(self):
        settings = DeerSettings(_env_file=None, deer_config="conf/deer.yaml")
        assert settings.get_deer_config_path().endswith("conf/deer.yaml")
        assert settings.get_deer_config_path().startswith("/")

    def test_settings_config_file_checked_before_loading(self, tmp_path, deer_yaml):
        settings = DeerSettings(_env_file=None, deer_config=str(deer_yaml))
        assert settings.validate_deer_config_file() is True
        assert load_settings_deer_config(settings).model.api_key == "yaml-key"

        text_file = tmp_path / "deer.txt"
        text_file.write_text("mcp: {}\n", encoding="utf-8")
        for path in (tmp_path / "missing.yaml", text_file):
            settings = DeerSettings(_env_file=None, deer_config=str(path))
            with pytest.raises(ValueError, match="deer 설정 파일이 없거나"):
                load_settings_deer_config(settings)

    def test_overrides_skip_empty(self):
        settings = DeerSettings(_env_file=None, openai_api_key="", openai_model="m", openai_base_url=None)
        assert settings.get_openai_overrides() == {"model": "m"}


class TestModelConfigResolution:
    """환경변수와 deer.yaml 모델 설정 병합 테스트"""

    def test_env_overrides_yaml(self):
        settings = DeerSettings(_env_file=None, openai_api_key="env-key", openai_model="env-model")
        config = DeerConfig(model=ModelConfig(default_model="yaml-model", api_key="yaml-key", base_url="http://yaml"))

        resolved = resolve_model_config(settings, config)

        assert resolved["api_key"] == "env-key"
        assert resolved["model"] == "env-model"
        assert resolved["base_url"] == "http://yaml"

    def test_yaml_used_when_env_empty(self):
        settings = DeerSettings(_env_file=None, openai_api_key="", openai_model=None)
        config = DeerConfig(model=ModelConfig(default_model="yaml-model", api_key="yaml-key"))

        resolved = resolve_model_config(settings, config)

        assert resolved["api_key"] == "yaml-key"
        assert resolved["model"] == "yaml-model"

    def test_missing_api_key_raises(self):
        settings = DeerSettings(_env_file=None, openai_api_key="")
        with pytest.raises(ValueError, match="API 키"):
            resolve_model_config(settings, DeerConfig())
