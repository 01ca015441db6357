"""프롬프트 로더와 그래프 시각화 테스트"""

import pytest

from deer_agent.models import AgentName
from deer_agent.workflows.prompts import PromptLoader
from deer_agent.workflows.visualization import visualize_workflow


class TestPromptLoader:
    """프롬프트 로딩 테스트"""

    def test_default_planner_prompt_renders(self):
        text = PromptLoader().render(AgentName.PLANNER, locale="ko-KR", max_step_num=2)

        assert "최대 2개 단계" in text
        assert '"locale": "ko-KR"' in text

    def test_override_from_directory(self, tmp_path):
        (tmp_path / "reporter.md").write_text("보고서 언어: {locale}", encoding="utf-8")

        text = PromptLoader(str(tmp_path)).render(AgentName.REPORTER, locale="en-US")

        assert text == "보고서 언어: en-US"

    def test_unknown_agent_raises(self):
        with pytest.raises(ValueError):
            PromptLoader().get_template("unknown")


class TestVisualization:
    """워크플로우 시각화 테스트"""

    def test_mermaid_contains_all_agents(self, tmp_path):
        output = tmp_path / "graph.mmd"

        text = visualize_workflow(output_format="mermaid", save_to_file=str(output))

        for name in AgentName.all():
            assert name in text
        assert output.read_text(encoding="utf-8") == text

    def test_unsupported_format(self):
        with pytest.raises(ValueError):
            visualize_workflow(output_format="png")
