"""Message model shared by the filter, rewriter and compactor."""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


@dataclass(frozen=True)
class TextPart:
    """Plain narration text."""
    text: str


@dataclass(frozen=True)
class ToolCallPart:
    """A tool invocation. Only valid inside assistant messages."""
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    """The output of a tool invocation. Only valid inside tool messages."""
    id: str
    name: str
    output: Any = None


ContentPart = TextPart | ToolCallPart | ToolResultPart


@dataclass(frozen=True)
class Message:
    """A single conversation message.

    ``content`` is either a plain text block or an ordered tuple of parts.
    Lists passed in are normalized to tuples so a message can never be
    changed after construction; transforms build new messages instead.
    """
    role: Role
    content: str | tuple[ContentPart, ...] = ""

    def __post_init__(self):
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))

    @property
    def parts(self) -> tuple[ContentPart, ...]:
        """Content parts, or an empty tuple for plain text messages."""
        if isinstance(self.content, tuple):
            return self.content
        return ()

    @property
    def has_parts(self) -> bool:
        return isinstance(self.content, tuple)

    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]

    def with_parts(self, parts) -> "Message":
        return replace(self, content=tuple(parts))


def system(text: str) -> Message:
    return Message(Role.system, text)


def user(text: str) -> Message:
    return Message(Role.user, text)


def assistant(content) -> Message:
    return Message(Role.assistant, content)


def call_ids(messages: list[Message]) -> set[str]:
    """Ids of all tool calls carried by assistant messages."""
    return {
        p.id
        for m in messages if m.role == Role.assistant
        for p in m.tool_calls()
    }


def result_ids(messages: list[Message]) -> set[str]:
    """Ids of all tool results carried by tool messages."""
    return {
        p.id
        for m in messages if m.role == Role.tool
        for p in m.tool_results()
    }


def parse_input(raw: Any) -> Any:
    """Decode a tool-call input that may arrive as a JSON string."""
    if isinstance(raw, str):
        return json.loads(raw)
    return raw


# ── dict conversion ─────────────────────────────────────────────


def _part_from_dict(data: dict[str, Any]) -> ContentPart:
    kind = data.get("type")
    if kind == "text":
        return TextPart(data.get("text") or data.get("value") or "")

    part_id = data.get("tool_call_id") or data.get("toolCallId") or ""
    name = data.get("tool_name") or data.get("toolName") or ""
    if kind == "tool-call":
        raw = data.get("input", {})
        try:
            tool_input = parse_input(raw)
        except json.JSONDecodeError:
            tool_input = raw
        return ToolCallPart(part_id, name, tool_input if tool_input is not None else {})
    if kind == "tool-result":
        return ToolResultPart(part_id, name, data.get("output"))
    raise ValueError(f"Unknown content part type: {kind!r}")


def _part_to_dict(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ToolCallPart):
        return {
            "type": "tool-call",
            "tool_call_id": part.id,
            "tool_name": part.name,
            "input": part.input,
        }
    return {
        "type": "tool-result",
        "tool_call_id": part.id,
        "tool_name": part.name,
        "output": part.output,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    """Build a Message from its JSON-friendly dict form."""
    content = data.get("content", "")
    if isinstance(content, list):
        content = tuple(_part_from_dict(p) for p in content)
    elif content is None:
        content = ""
    return Message(Role(data["role"]), content)


def message_to_dict(message: Message) -> dict[str, Any]:
    """Inverse of :func:`message_from_dict`."""
    if isinstance(message.content, tuple):
        content: Any = [_part_to_dict(p) for p in message.content]
    else:
        content = message.content
    return {"role": message.role.value, "content": content}


def messages_from_dicts(items: list[dict[str, Any]]) -> list[Message]:
    return [message_from_dict(m) for m in items]


def messages_to_dicts(messages: list[Message]) -> list[dict[str, Any]]:
    return [message_to_dict(m) for m in messages]
