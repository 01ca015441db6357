#!/usr/bin/env python3
"""deer 연구 에이전트 패키지 메인 엔트리포인트

python -m deer_agent 명령으로 실행 가능한 CLI 인터페이스를 제공합니다.
"""

import sys
import asyncio
import argparse
import subprocess
from pathlib import Path

EXIT_COMMANDS = ("exit", "quit", "종료")


async def _ask(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


async def research_console(query: str = None) -> int:
    """콘솔에서 연구 워크플로우를 대화형으로 실행합니다"""
    from .config import get_settings
    from .models import Plan
    from .observability import setup_logging
    from .workflows import create_research_executor, format_plan

    settings = get_settings()
    setup_logging(settings.log_level, settings.json_rpc_log_file)
    executor = await create_research_executor(settings=settings)

    thread_id = None
    try:
        while True:
            if not query:
                query = await _ask("\n질문> ")
            if not query or query.lower() in EXIT_COMMANDS:
                break

            result = await executor.execute(query, thread_id=thread_id)
            while result["success"] and result["status"] == "interrupted":
                plan = Plan.model_validate(result["plan"]) if result.get("plan") else None
                print("\n" + format_plan(plan))
                feedback = await _ask("\n피드백 (accepted / edit_plan: 수정 의견)> ")
                result = await executor.resume(result["thread_id"], feedback)

            if result["success"]:
                print("\n" + (result["response"] or "(응답 없음)"))
            else:
                print(f"\n오류: {result.get('error')}")

            thread_id = result["thread_id"]
            query = None
    except (KeyboardInterrupt, EOFError):
        print("\n종료합니다")
    finally:
        await executor.close()
    return 0


async def plan_execute_console(query: str) -> int:
    """Plan-Execute-Replan 워크플로우를 실행합니다 (추가 정보 질문에는 콘솔로 답함)"""
    import uuid

    from .adapters import EnhancedMCPClient
    from .checkpoints import InMemoryCheckPointStore, KVCheckpointSaver
    from .config import get_settings, load_settings_deer_config
    from .observability import setup_logging
    from .workflows import PlanExecuteNodes, build_plan_execute_graph, resume_plan_execute, run_plan_execute
    from .workflows.llm_utils import get_chat_llm, get_json_llm

    settings = get_settings()
    setup_logging(settings.log_level, settings.json_rpc_log_file)
    config = load_settings_deer_config(settings)

    async with EnhancedMCPClient() as mcp_client:
        await mcp_client.initialize(config)
        nodes = PlanExecuteNodes(
            plan_model=get_json_llm(settings, config),
            chat_model=get_chat_llm(settings, config),
            tools=mcp_client.get_tools(),
            enable_clarification=True,
        )
        workflow = build_plan_execute_graph(nodes, checkpointer=KVCheckpointSaver(InMemoryCheckPointStore()))
        thread_id = str(uuid.uuid4())
        result = await run_plan_execute(workflow, query, thread_id=thread_id)
        while result["success"] and result["status"] == "interrupted":
            print(f"\n질문: {result['question']}")
            answer = await _ask("답변> ")
            result = await resume_plan_execute(workflow, thread_id, answer)

    for step, output in result["past_steps"]:
        print(f"\n## {step}\n{output}")
    if not result["success"]:
        print(f"\n오류: {result.get('error')}")
        return 1
    print(f"\n# 최종 응답\n{result['response']}")
    return 0


async def supervisor_console(query: str) -> int:
    """2단 수퍼바이저 워크플로우를 한 번 실행합니다"""
    from .adapters import EnhancedMCPClient
    from .config import get_settings, load_settings_deer_config
    from .observability import setup_logging
    from .workflows import create_layered_supervisor, run_supervisor
    from .workflows.llm_utils import get_chat_llm

    settings = get_settings()
    setup_logging(settings.log_level, settings.json_rpc_log_file)
    config = load_settings_deer_config(settings)

    async with EnhancedMCPClient() as mcp_client:
        await mcp_client.initialize(config)
        search_tool = mcp_client.find_tool("search")
        workflow = create_layered_supervisor(
            get_chat_llm(settings, config),
            search_tools=[search_tool] if search_tool else [],
        )
        result = await run_supervisor(workflow, query)

    for agent, content in result["trace"]:
        print(f"\n[{agent}] {content}")
    if not result["success"]:
        print(f"\n오류: {result.get('error')}")
        return 1
    print(f"\n# 최종 응답\n{result['response']}")
    return 0


def show_graph(output_format: str, output: str = None) -> int:
    """연구 워크플로우 그래프 출력"""
    from .workflows.visualization import visualize_workflow

    print(visualize_workflow(output_format=output_format, save_to_file=output))
    return 0


def run_tests():
    """테스트 실행"""
    print("🧪 deer 연구 에이전트 테스트 실행")

    project_root = Path(__file__).parent.parent
    try:
        result = subprocess.run([
            sys.executable, "-m", "pytest",
            "deer_agent/tests/",
            "-v", "--tb=short"
        ], cwd=project_root)
        return result.returncode
    except Exception as e:
        print(f"pytest 실행 실패: {e}")
        return 1


def run_server():
    """서버 실행"""
    print("🚀 deer 연구 에이전트 서버 시작")

    project_root = Path(__file__).parent.parent
    main_script = project_root / "main.py"

    try:
        result = subprocess.run([sys.executable, str(main_script)], cwd=project_root)
        return result.returncode
    except Exception as e:
        print(f"서버 실행 실패: {e}")
        return 1


def show_help():
    """도움말 표시"""
    help_text = """
🦌 deer 연구 에이전트 CLI

사용법:
  python -m deer_agent [command]

명령어:
  research [질문]       대화형 연구 실행 (계획 검토 포함)
  plan-execute <질문>   Plan-Execute-Replan 워크플로우 실행
  supervisor <질문>     수퍼바이저 워크플로우 실행 (조사 + 수학 에이전트)
  graph                 워크플로우 그래프 출력 (--format mermaid|ascii, --output 파일)
  test                  모든 테스트 실행
  server                API 서버 시작
  help                  이 도움말 표시

예시:
  python -m deer_agent research "2025년 전기차 배터리 시장 동향"
  python -m deer_agent plan-execute "서울과 부산의 인구 차이는?"
  python -m deer_agent supervisor "미국 GDP는 뉴욕주 GDP보다 얼마나 큰가?"
  python -m deer_agent graph --format mermaid --output docs/graph.mmd
"""
    print(help_text)


def main():
    """메인 함수"""
    parser = argparse.ArgumentParser(
        description="deer 연구 에이전트 CLI",
        add_help=False  # 커스텀 help 사용
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["research", "plan-execute", "supervisor", "graph", "test", "server", "help"],
        default="help",
        help="실행할 명령어"
    )
    parser.add_argument("query", nargs="*", help="질문")
    parser.add_argument("--format", choices=["mermaid", "ascii"], default="mermaid", help="그래프 출력 형식")
    parser.add_argument("--output", default=None, help="그래프 저장 파일")

    args = parser.parse_args()
    query = " ".join(args.query).strip()

    if args.command == "research":
        return asyncio.run(research_console(query or None))
    elif args.command in ("plan-execute", "supervisor"):
        if not query:
            print("질문을 입력하세요")
            return 1
        if args.command == "supervisor":
            return asyncio.run(supervisor_console(query))
        return asyncio.run(plan_execute_console(query))
    elif args.command == "graph":
        return show_graph(args.format, args.output)
    elif args.command == "test":
        return run_tests()
    elif args.command == "server":
        return run_server()
    else:
        show_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
