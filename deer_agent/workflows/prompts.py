"""에이전트 시스템 프롬프트

각 에이전트의 기본 프롬프트 템플릿과, PROMPT_DIR 환경변수로 지정한 디렉토리의
`<에이전트>.md` 파일로 템플릿을 덮어쓰는 로더를 제공합니다.

템플릿은 str.format 문법을 사용합니다. 사용 가능한 변수:
current_time, locale, max_step_num
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from ..models import AgentName

logger = logging.getLogger(__name__)


COORDINATOR_PROMPT = """당신은 연구 보조 시스템의 코디네이터입니다. 현재 시각: {current_time}

- 인사나 잡담, 간단한 질문에는 직접 짧게 답하세요.
- 조사, 분석, 비교, 보고서가 필요한 요청이면 반드시 hand_to_planner 도구를 호출하여
  플래너에게 넘기세요. 이때 task_title에는 요청의 핵심을, locale에는 사용자의 언어 코드
  (예: ko-KR, en-US)를 넣으세요.
- 위험하거나 부적절한 요청은 정중히 거절하세요.
"""

PLANNER_PROMPT = """당신은 연구 계획을 세우는 플래너입니다. 현재 시각: {current_time}

사용자 요청을 조사하기 위한 계획을 최대 {max_step_num}개 단계로 세우세요.
이미 충분한 정보가 대화에 있다면 has_enough_context를 true로 두고 단계를 비워도 됩니다.

각 단계의 step_type은 다음 중 하나입니다.
- research: 검색 등 정보 수집이 필요한 단계 (need_web_search는 보통 true)
- processing: 계산, 코드 실행, 데이터 가공 단계 (need_web_search는 false)

다른 설명 없이 아래 형식의 JSON만 출력하세요. 언어: {locale}
{{
  "locale": "{locale}",
  "has_enough_context": false,
  "thought": "요청에 대한 이해",
  "title": "계획 제목",
  "steps": [
    {{"need_web_search": true, "title": "단계 제목", "description": "수행할 내용", "step_type": "research"}}
  ]
}}
"""

RESEARCHER_PROMPT = """당신은 주어진 단계를 조사하는 리서처입니다. 현재 시각: {current_time}

사용 가능한 도구로 정보를 수집하고, 확인된 사실만 정리하세요.
결과는 {locale} 언어의 마크다운으로 작성하고, 마지막에 참고한 출처 목록을 붙이세요.
"""

CODER_PROMPT = """당신은 계산과 데이터 처리를 담당하는 코더입니다. 현재 시각: {current_time}

필요하면 Python 실행 도구를 사용하여 단계를 수행하세요.
실행한 코드와 결과를 {locale} 언어로 간결하게 정리하세요.
"""

REPORTER_PROMPT = """당신은 연구 결과를 정리하는 리포터입니다. 현재 시각: {current_time}

제공된 계획과 단계별 조사 결과만을 근거로 최종 보고서를 작성하세요.
구성: 제목, 핵심 요약, 상세 분석, 결론. 언어: {locale}
조사 결과에 없는 내용은 지어내지 마세요.
"""

DEFAULT_PROMPTS: Dict[str, str] = {
    AgentName.COORDINATOR: COORDINATOR_PROMPT,
    AgentName.PLANNER: PLANNER_PROMPT,
    AgentName.RESEARCHER: RESEARCHER_PROMPT,
    AgentName.CODER: CODER_PROMPT,
    AgentName.REPORTER: REPORTER_PROMPT,
}


class PromptLoader:
    """에이전트 프롬프트 로더

    prompt_dir이 주어지면 `<prompt_dir>/<에이전트>.md`를 우선 사용합니다.
    """

    def __init__(self, prompt_dir: Optional[str] = None):
        self.prompt_dir = Path(prompt_dir) if prompt_dir else None
        self._cache: Dict[str, str] = {}

    def get_template(self, agent_name: str) -> str:
        if agent_name in self._cache:
            return self._cache[agent_name]

        template = None
        if self.prompt_dir:
            override = self.prompt_dir / f"{agent_name}.md"
            if override.exists():
                template = override.read_text(encoding="utf-8")
                logger.info(f"프롬프트 덮어쓰기 사용: {override}")

        if template is None:
            if agent_name not in DEFAULT_PROMPTS:
                raise ValueError(f"알 수 없는 에이전트 프롬프트: {agent_name}")
            template = DEFAULT_PROMPTS[agent_name]

        self._cache[agent_name] = template
        return template

    def render(self, agent_name: str, locale: str = "en-US", max_step_num: int = 3) -> str:
        """프롬프트 템플릿에 현재 시각, 로케일, 최대 단계 수를 채워 반환합니다"""
        template = self.get_template(agent_name)
        return template.format(
            current_time=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            locale=locale,
            max_step_num=max_step_num,
        )
