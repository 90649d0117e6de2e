"""Tool interface exposed to the tool-calling loop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


class Tool(ABC):
    """A capability the model can call by name with JSON arguments."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Function name the model calls."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the arguments."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run the tool. Failures are reported in the returned text."""
        ...

    def validate_params(self, params: dict[str, Any]) -> dict[str, Any]:
        """Check required fields and top-level types, drop unknown keys.

        Strings are coerced for string-typed fields since models often send
        numbers for things like pin ids.
        """
        schema = self.parameters
        properties = schema.get("properties", {})

        for field in schema.get("required", []):
            if field not in params:
                raise ValueError(f"Missing required parameter: {field}")

        cleaned: dict[str, Any] = {}
        for key, value in params.items():
            spec = properties.get(key)
            if spec is None:
                continue
            expected = spec.get("type")
            if expected == "string" and not isinstance(value, str):
                value = str(value)
            elif expected in _JSON_TYPES and not isinstance(value, _JSON_TYPES[expected]):
                raise ValueError(f"Parameter '{key}' must be {expected}")
            cleaned[key] = value
        return cleaned

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-calling schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
