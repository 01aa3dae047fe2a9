"""Approximate token estimation for context management."""

import json

from condenser.messages import Message, TextPart, ToolCallPart, ToolResultPart

CHARS_PER_TOKEN = 4  # Cross-model estimate (EN text/code/JSON)
MESSAGE_OVERHEAD = 4  # Per-message overhead (role, separators)


def estimate_tokens(text: str) -> int:
    """Estimate token count from character count."""
    return len(text) // CHARS_PER_TOKEN


def estimate_message_tokens(message: Message) -> int:
    """Estimate tokens for a single message, tool payloads included."""
    total = MESSAGE_OVERHEAD
    if isinstance(message.content, str):
        return total + estimate_tokens(message.content)

    for part in message.content:
        if isinstance(part, TextPart):
            total += estimate_tokens(part.text)
        elif isinstance(part, ToolCallPart):
            total += estimate_tokens(part.name)
            total += estimate_tokens(json.dumps(part.input, default=str))
        elif isinstance(part, ToolResultPart):
            total += estimate_tokens(part.name)
            output = part.output
            if not isinstance(output, str):
                output = json.dumps(output, default=str)
            total += estimate_tokens(output)
    return total


def estimate_messages_tokens(messages: list[Message]) -> int:
    """Estimate total tokens for a message list."""
    return sum(estimate_message_tokens(m) for m in messages)
