"""
Tools the model may call, built fluently::

    weather = (
        Tool.as_("weather")
        .for_("Current weather for a city")
        .with_string_parameter("city", "City name")
        .using(lambda city: f"Sunny in {city}")
    )
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Self, Sequence

from llm_conduit.errors import ConfigurationError

__all__ = ["Tool", "ToolParameter"]


@dataclass(frozen=True)
class ToolParameter:
    """One named argument of a tool, described by a JSON-schema fragment."""

    name: str
    schema: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    required: bool = True

    def to_schema(self) -> dict[str, Any]:
        schema = dict(self.schema)
        if self.description:
            schema.setdefault("description", self.description)
        return schema


class Tool:
    def __init__(self) -> None:
        self._name: str = ""
        self._description: str = ""
        self._parameters: list[ToolParameter] = []
        self._handler: Optional[Callable[..., Any]] = None

    # --- fluent construction ----------------------------------------------

    @classmethod
    def as_(cls, name: str) -> Self:
        """Start a new tool called *name*."""
        return cls()._named(name)

    def _named(self, name: str) -> Self:
        if self._name:
            raise ConfigurationError(f"Tool {self._name} cannot be renamed to {name}")
        if not name:
            raise ConfigurationError("Tool name cannot be empty")
        self._name = name
        return self

    def for_(self, description: str) -> Self:
        self._description = description
        return self

    def with_parameter(self, parameter: ToolParameter) -> Self:
        if any(p.name == parameter.name for p in self._parameters):
            raise ConfigurationError(
                f"Tool {self._name} already declares a parameter named {parameter.name}"
            )
        self._parameters.append(parameter)
        return self

    def with_string_parameter(self, name: str, description: str = "", required: bool = True) -> Self:
        return self.with_parameter(ToolParameter(name, {"type": "string"}, description, required))

    def with_number_parameter(self, name: str, description: str = "", required: bool = True) -> Self:
        return self.with_parameter(ToolParameter(name, {"type": "number"}, description, required))

    def with_integer_parameter(self, name: str, description: str = "", required: bool = True) -> Self:
        return self.with_parameter(ToolParameter(name, {"type": "integer"}, description, required))

    def with_boolean_parameter(self, name: str, description: str = "", required: bool = True) -> Self:
        return self.with_parameter(ToolParameter(name, {"type": "boolean"}, description, required))

    def with_array_parameter(
        self,
        name: str,
        description: str = "",
        items: Optional[dict[str, Any]] = None,
        required: bool = True,
    ) -> Self:
        schema = {"type": "array", "items": items or {"type": "string"}}
        return self.with_parameter(ToolParameter(name, schema, description, required))

    def with_enum_parameter(
        self,
        name: str,
        options: Sequence[Any],
        description: str = "",
        required: bool = True,
    ) -> Self:
        schema: dict[str, Any] = {"enum": list(options)}
        if options and all(isinstance(o, str) for o in options):
            schema["type"] = "string"
        return self.with_parameter(ToolParameter(name, schema, description, required))

    def with_object_parameter(
        self,
        name: str,
        properties: dict[str, dict[str, Any]],
        description: str = "",
        required_properties: Sequence[str] = (),
        required: bool = True,
    ) -> Self:
        schema = {
            "type": "object",
            "properties": properties,
            "required": list(required_properties),
        }
        return self.with_parameter(ToolParameter(name, schema, description, required))

    def using(self, handler: Callable[..., Any]) -> Self:
        """
        Attach the handler. It must accept every declared parameter by name.

        Raises:
            ConfigurationError: if the handler's signature cannot bind the
                declared parameter set.
        """
        if not callable(handler):
            raise ConfigurationError(f"Handler for tool {self._name} is not callable")
        self._check_arity(handler)
        self._handler = handler
        return self

    def _check_arity(self, handler: Callable[..., Any]) -> None:
        try:
            signature = inspect.signature(handler)
        except (TypeError, ValueError):
            # builtins without introspectable signatures
            return
        try:
            signature.bind_partial(**{p.name: None for p in self._parameters})
        except TypeError as exc:
            raise ConfigurationError(
                f"Handler for tool {self._name} does not accept its declared parameters: {exc}",
                exc,
            ) from exc

        accepts_var_kw = any(
            p.kind is inspect.Parameter.VAR_KEYWORD for p in signature.parameters.values()
        )
        declared = {p.name for p in self._parameters}
        for param in signature.parameters.values():
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            if param.default is inspect.Parameter.empty and param.name not in declared and not accepts_var_kw:
                raise ConfigurationError(
                    f"Handler for tool {self._name} requires undeclared parameter {param.name}"
                )

    # --- accessors --------------------------------------------------------

    def name(self) -> str:
        return self._name

    def description(self) -> str:
        return self._description

    def parameters(self) -> tuple[ToolParameter, ...]:
        return tuple(self._parameters)

    def required_parameters(self) -> list[str]:
        return [p.name for p in self._parameters if p.required]

    def has_handler(self) -> bool:
        return self._handler is not None

    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments object."""
        return {
            "type": "object",
            "properties": {p.name: p.to_schema() for p in self._parameters},
            "required": self.required_parameters(),
        }

    # --- invocation -------------------------------------------------------

    async def handle(self, /, **arguments: Any) -> Any:
        """Invoke the handler by keyword, awaiting it if it is a coroutine."""
        if self._handler is None:
            raise ConfigurationError(f"Tool {self._name} has no handler")
        result = self._handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"Tool(name={self._name!r}, parameters={[p.name for p in self._parameters]!r})"
