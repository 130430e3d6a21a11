from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from teamchat.agents.user_proxy import TERMINATE


class LLMConfig(BaseModel):
    provider: str
    model: str
    temperature: float = 0.0
    api_key_env: str = "OPENAI_API_KEY"
    base_url: Optional[str] = None
    timeout: Optional[float] = None


class AgentPromptConfig(BaseModel):
    prompt_path: str
    temperature: Optional[float] = None


class WorkflowConfig(BaseModel):
    max_rounds: int = Field(ge=0)
    termination_sentinel: str = TERMINATE
    turn_timeout: Optional[float] = Field(default=None, gt=0)
    max_consecutive_failures: Optional[int] = Field(default=None, ge=0)


class ExecutorConfig(BaseModel):
    workdir: str = "workdir"
    max_output: int = Field(default=500, ge=0)
    shell: List[str] = Field(default_factory=lambda: ["bash", "-c"])
    process_timeout: Optional[float] = None


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    llm: LLMConfig
    agents: Dict[str, AgentPromptConfig]
    workflow: WorkflowConfig
    executor: ExecutorConfig
    logging: LoggingConfig


def load_config(env: str = "base", config_dir: str | Path = "configs") -> AppConfig:
    config_dir = Path(config_dir)
    base = _read_yaml(config_dir / "base.yaml")
    if env != "base":
        override_path = config_dir / f"{env}.yaml"
        if override_path.exists():
            base = _merge_dicts(base, _read_yaml(override_path))
    return AppConfig(
        llm=LLMConfig(**base["llm"]),
        agents={k: AgentPromptConfig(**v) for k, v in base.get("agents", {}).items()},
        workflow=WorkflowConfig(**base["workflow"]),
        executor=ExecutorConfig(**base.get("executor", {})),
        logging=LoggingConfig(**base.get("logging", {"level": "INFO"})),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged
