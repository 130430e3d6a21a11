from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Type

from pydantic import BaseModel, ValidationError


class Tool(ABC):
    """Callable capability an agent can advertise to the backend.

    Arguments arrive as raw JSON text and are validated against
    ``args_schema`` before ``run`` sees them. Bad input never raises: it comes
    back as result text so the requesting agent can correct itself.
    """

    name: str
    description: str
    args_schema: Type[BaseModel]

    def __init__(self, name: str, description: str, args_schema: Type[BaseModel]) -> None:
        self.name = name
        self.description = description
        self.args_schema = args_schema

    @abstractmethod
    def run(self, arguments: BaseModel) -> str:
        """Execute tool logic with validated arguments and return result text."""

    def invoke(self, raw_arguments: str | Dict[str, Any] | None) -> str:
        try:
            if isinstance(raw_arguments, dict):
                payload = raw_arguments
            else:
                payload = json.loads(raw_arguments or "{}")
            arguments = self.args_schema.model_validate(payload)
        except json.JSONDecodeError as exc:
            return f"Invalid argument for {self.name}: arguments are not valid JSON ({exc.msg})"
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in error['loc']) or 'arguments'}: {error['msg']}"
                for error in exc.errors()
            )
            return f"Invalid argument for {self.name}: {problems}"
        try:
            return self.run(arguments)
        except (OSError, UnicodeDecodeError) as exc:
            return f"Invalid argument for {self.name}: {exc}"

    def to_openai_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_schema.model_json_schema(),
            },
        }
