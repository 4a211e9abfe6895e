from __future__ import annotations

import copy
import dataclasses
from typing import Any, Optional, Self, Union

from pydantic import BaseModel, ValidationError

from llm_conduit.errors import ConfigurationError, MissingRequiredFieldError, StructuredDecodingError
from llm_conduit.pending.base import PromptingPendingRequest
from llm_conduit.requests import StructuredRequest
from llm_conduit.types.response import StructuredResponse

__all__ = ["PendingStructuredRequest"]

_SCHEMA_MAPS = ("properties", "$defs", "definitions", "patternProperties")
_LITERAL_KEYS = ("default", "examples", "const", "enum")


class PendingStructuredRequest(PromptingPendingRequest):
    """
    Builder for schema-constrained output.

    ``with_schema`` accepts a JSON-schema dict or a pydantic model class; with
    a model class the response's ``parsed`` field holds a validated instance.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._schema: Optional[dict[str, Any]] = None
        self._schema_name: str = "output"
        self._model_cls: Optional[type[BaseModel]] = None

    def with_schema(
        self,
        schema: Union[dict[str, Any], type[BaseModel]],
        name: Optional[str] = None,
    ) -> Self:
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            self._model_cls = schema
            self._schema = _closed_schema(schema.model_json_schema())
            self._schema_name = name or schema.__name__
        elif isinstance(schema, dict):
            self._model_cls = None
            self._schema = dict(schema)
            self._schema_name = name or "output"
        else:
            raise ConfigurationError("Schema must be a JSON-schema dict or a pydantic model class")
        return self

    def to_request(self) -> StructuredRequest:
        if self._schema is None:
            raise MissingRequiredFieldError("schema", "A schema is required for structured output")

        return StructuredRequest(
            **self._common_fields(),
            **self._resolve_prompting(),
            schema=self._schema,
            schema_name=self._schema_name,
        )

    async def as_structured(self) -> StructuredResponse:
        request = self.to_request()
        provider = self._require_provider()

        with self._span(request) as completed:
            response = await provider.structured(request)
            if self._model_cls is not None:
                response = dataclasses.replace(response, parsed=self._parse(response))
            completed["response"] = response
        return response

    def _parse(self, response: StructuredResponse) -> BaseModel:
        try:
            return self._model_cls.model_validate(response.structured)
        except ValidationError as e:
            raise StructuredDecodingError(
                f"Response does not match {self._schema_name}: {e}", response.text, e
            ) from e


def _closed_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Copy of a model-derived schema that strict structured-output modes accept.

    Every object schema, including those under ``$defs``, gets
    ``additionalProperties: false`` and lists all of its properties as
    required. Objects that already declare ``additionalProperties`` (such
    as ``dict`` fields) are left open.
    """
    closed = copy.deepcopy(schema)
    _close(closed)
    return closed


def _close(node: Any) -> None:
    if isinstance(node, list):
        for item in node:
            _close(item)
        return
    if not isinstance(node, dict):
        return

    if (node.get("type") == "object" or "properties" in node) and "additionalProperties" not in node:
        node["additionalProperties"] = False
        if "properties" in node:
            node["required"] = list(node["properties"])

    for key, value in node.items():
        if key in _LITERAL_KEYS:
            continue
        if key in _SCHEMA_MAPS and isinstance(value, dict):
            # keys here are names, not keywords
            for subschema in value.values():
                _close(subschema)
        else:
            _close(value)
