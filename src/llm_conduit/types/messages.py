"""Provider-neutral conversation messages and media."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from llm_conduit.types.tool import ToolCall, ToolResult

__all__ = [
    "Text",
    "Image",
    "Content",
    "UserMessage",
    "SystemMessage",
    "AssistantMessage",
    "ToolResultMessage",
    "Message",
]


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class Image:
    """An image attached to a user message, either by URL or inline base64."""

    url: Optional[str] = None
    base64: Optional[str] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_url(cls, url: str, mime_type: Optional[str] = None) -> "Image":
        return cls(url=url, mime_type=mime_type)

    @classmethod
    def from_base64(cls, data: str, mime_type: str = "image/png") -> "Image":
        return cls(base64=data, mime_type=mime_type)

    def is_url(self) -> bool:
        return self.url is not None

    def data_url(self) -> str:
        """URL form usable by OpenAI-style ``image_url`` parts."""
        if self.url is not None:
            return self.url
        return f"data:{self.mime_type or 'image/png'};base64,{self.base64}"


Content = Union[Text, Image]


@dataclass(frozen=True)
class UserMessage:
    """
    A user-authored message.

    ``additional_content`` always begins with ``Text(content)``; any media
    passed in follows in the order given.
    """

    content: str
    additional_content: tuple[Content, ...] = ()

    def __post_init__(self) -> None:
        media = tuple(self.additional_content)
        if media and media[0] == Text(self.content):
            media = media[1:]
        object.__setattr__(self, "additional_content", (Text(self.content), *media))

    def images(self) -> list[Image]:
        return [part for part in self.additional_content if isinstance(part, Image)]

    def text(self) -> str:
        return "".join(part.text for part in self.additional_content if isinstance(part, Text))


@dataclass(frozen=True)
class SystemMessage:
    content: str


@dataclass(frozen=True)
class AssistantMessage:
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class ToolResultMessage:
    tool_results: tuple[ToolResult, ...] = field(default_factory=tuple)


Message = Union[UserMessage, SystemMessage, AssistantMessage, ToolResultMessage]
