from __future__ import annotations

import argparse
import os
import uuid

from teamchat.schemas.messages import Task
from teamchat.telemetry.logging import setup_logging
from teamchat.utils.llm_clients import build_llm_client
from teamchat.utils.settings import AppConfig, load_config
from teamchat.workflows.team import USER, build_team


def build_client(config: AppConfig):
    llm = config.llm
    if llm.provider != "openai":
        return build_llm_client(llm.provider, llm.model)
    return build_llm_client(
        llm.provider,
        llm.model,
        api_key=os.environ.get(llm.api_key_env),
        base_url=llm.base_url,
        timeout=llm.timeout,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the coding team group chat on a task.")
    parser.add_argument("task", help="Coding task for the team.")
    parser.add_argument("--env", default="base", help="Config environment (base, dev, prod, ...).")
    parser.add_argument("--config-dir", default="configs", help="Directory holding <env>.yaml files.")
    parser.add_argument("--workdir", default=None, help="Working directory for executed code and files.")
    parser.add_argument("--max-rounds", type=int, default=None, help="Override workflow.max_rounds.")
    parser.add_argument("--interactive", action="store_true", help="Ask for user input instead of ending.")
    args = parser.parse_args()

    config = load_config(args.env, args.config_dir)
    setup_logging(config.logging.level)
    team = build_team(
        config,
        build_client(config),
        workdir=args.workdir,
        input_fn=input if args.interactive else None,
    )
    max_rounds = args.max_rounds if args.max_rounds is not None else config.workflow.max_rounds
    task = Task(id=str(uuid.uuid4()), description=args.task)
    result = team.manager(config).initiate(task, max_rounds=max_rounds, initiator=USER)

    print("=" * 20)
    print(f"Conversation ended: {result.outcome.value} after {result.rounds} rounds ({result.detail})")
    print("-" * 20)
    print(result.last_message.content)
    print("=" * 20)


if __name__ == "__main__":
    main()
