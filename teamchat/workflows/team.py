from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from teamchat.agents.assistant import AssistantAgent
from teamchat.agents.base import Agent
from teamchat.agents.middleware import (
    CodeBlockExecutionMiddleware,
    FileBlockMiddleware,
    FunctionCallMiddleware,
    LastMessageFromMiddleware,
    LogMessageMiddleware,
)
from teamchat.agents.user_proxy import HumanInputMode, UserProxyAgent
from teamchat.tools.code_executor import CodeBlockExecutor
from teamchat.tools.file_system import FileSystemTools
from teamchat.tools.process_runner import ProcessRunner, python_runner
from teamchat.utils.llm_clients import LLMClient
from teamchat.utils.settings import AppConfig
from teamchat.workflows.graph import (
    Graph,
    Transition,
    all_of,
    history_has_speaker,
    last_message_contains,
    last_speaker_is,
    negate,
)
from teamchat.workflows.orchestrator import GroupChat, GroupChatManager

ADMIN = "admin"
CODER = "coder"
REVIEWER = "reviewer"
RUNNER = "runner"
FILE_SYSTEM_MANAGER = "file_system_manager"
USER = "user"
GROUP_ADMIN = "group_admin"

PYTHON_BLOCK = "```python"
SHELL_BLOCK = "```bash"
FILE_BLOCK = "```file"


@dataclass
class CodingTeam:
    agents: Dict[str, Agent]
    group_chat: GroupChat
    workdir: Path

    def manager(self, config: AppConfig) -> GroupChatManager:
        return GroupChatManager(
            self.group_chat,
            turn_timeout=config.workflow.turn_timeout,
            max_consecutive_failures=config.workflow.max_consecutive_failures,
        )


def build_graph() -> Graph:
    """Admin hands work out; every worker reports back to the admin."""
    admin_spoke = last_speaker_is(ADMIN)
    coder_has_spoken = history_has_speaker(CODER)
    return Graph(
        [
            Transition(ADMIN, CODER, admin_spoke),
            Transition(CODER, REVIEWER),
            Transition(REVIEWER, ADMIN),
            Transition(
                ADMIN,
                FILE_SYSTEM_MANAGER,
                all_of(
                    admin_spoke,
                    negate(last_message_contains(PYTHON_BLOCK)),
                    negate(last_message_contains(SHELL_BLOCK)),
                    coder_has_spoken,
                ),
            ),
            Transition(ADMIN, RUNNER, all_of(admin_spoke, negate(last_message_contains(FILE_BLOCK)), coder_has_spoken)),
            Transition(RUNNER, ADMIN),
            Transition(ADMIN, USER, admin_spoke),
            Transition(FILE_SYSTEM_MANAGER, ADMIN),
            Transition(USER, ADMIN),
        ]
    )


def build_team(
    config: AppConfig,
    llm_client: LLMClient,
    workdir: str | Path | None = None,
    input_fn: Optional[Callable[[str], str]] = None,
    base_dir: str | Path = ".",
) -> CodingTeam:
    base_dir = Path(base_dir)
    workdir = Path(workdir or config.executor.workdir)
    workdir.mkdir(parents=True, exist_ok=True)

    def assistant(key: str, name: str) -> AssistantAgent:
        prompt = config.agents[key]
        temperature = prompt.temperature if prompt.temperature is not None else config.llm.temperature
        return AssistantAgent.from_prompt_file(
            name,
            base_dir / prompt.prompt_path,
            llm_client=llm_client,
            temperature=temperature,
        )

    admin = assistant("admin", ADMIN).register_middleware(LogMessageMiddleware())
    coder = assistant("coder", CODER).register_middleware(LogMessageMiddleware())
    reviewer = assistant("reviewer", REVIEWER).register_middleware(LogMessageMiddleware())

    file_system = FileSystemTools(workdir)
    file_system_manager = (
        assistant("file_system_manager", FILE_SYSTEM_MANAGER)
        .register_middleware(FunctionCallMiddleware(file_system.tools()))
        .register_middleware(FileBlockMiddleware(file_system))
        .register_middleware(LogMessageMiddleware())
    )

    timeout = config.executor.process_timeout
    runner = (
        AssistantAgent(RUNNER, default_reply="No code available, coder, write code please")
        .register_middleware(
            CodeBlockExecutionMiddleware(
                CodeBlockExecutor(python_runner(timeout), workdir, PYTHON_BLOCK, max_output=config.executor.max_output)
            )
        )
        .register_middleware(
            CodeBlockExecutionMiddleware(
                CodeBlockExecutor(
                    ProcessRunner(config.executor.shell, timeout=timeout),
                    workdir,
                    SHELL_BLOCK,
                    max_output=config.executor.max_output,
                )
            )
        )
        .register_middleware(LastMessageFromMiddleware(CODER))
        .register_middleware(LogMessageMiddleware())
    )

    user = UserProxyAgent(
        USER,
        human_input_mode=HumanInputMode.ALWAYS if input_fn else HumanInputMode.NEVER,
        default_reply=config.workflow.termination_sentinel,
        input_fn=input_fn,
    ).register_middleware(LogMessageMiddleware())

    group_admin = assistant("group_admin", GROUP_ADMIN)

    members = [admin, coder, runner, file_system_manager, reviewer, user]
    group_chat = GroupChat(
        members=members,
        admin=group_admin,
        graph=build_graph(),
        termination_sentinel=config.workflow.termination_sentinel,
    )
    return CodingTeam(agents={agent.name: agent for agent in members}, group_chat=group_chat, workdir=workdir)
