"""Structural checks and repairs for model-bound message lists."""

from loguru import logger

from condenser.messages import (
    Message,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    call_ids,
    result_ids,
)
from condenser.types import IssueCode, ValidationIssue, ValidationResult


def find_system_issues(messages: list[Message]) -> list[ValidationIssue]:
    """Only the first message may be a system message."""
    return [
        ValidationIssue(
            IssueCode.scattered_system,
            f"System message at index {i} is not at the beginning",
            index=i,
        )
        for i, message in enumerate(messages)
        if i > 0 and message.role == Role.system
    ]


def find_tool_pairing_issues(messages: list[Message]) -> list[ValidationIssue]:
    """Every tool call needs a result with the same id, and vice versa."""
    calls = call_ids(messages)
    results = result_ids(messages)
    issues = [
        ValidationIssue(
            IssueCode.orphaned_tool_call,
            f'Tool-call "{cid}" has no matching tool-result',
            tool_call_id=cid,
        )
        for cid in sorted(calls - results)
    ]
    issues += [
        ValidationIssue(
            IssueCode.orphaned_tool_result,
            f'Tool-result "{rid}" has no matching tool-call',
            tool_call_id=rid,
        )
        for rid in sorted(results - calls)
    ]
    return issues


def find_sequence_issues(messages: list[Message]) -> list[ValidationIssue]:
    """Consecutive assistant messages are rejected by some providers."""
    issues = []
    for i in range(1, len(messages)):
        if messages[i].role == Role.assistant and messages[i - 1].role == Role.assistant:
            issues.append(ValidationIssue(
                IssueCode.consecutive_assistant,
                f"Consecutive assistant messages detected at index {i}",
                index=i,
            ))
    return issues


def find_assistant_content_issues(messages: list[Message]) -> list[ValidationIssue]:
    """Flag empty assistant messages and trailing whitespace on the last one.

    Pre-filled assistant turns must not end with whitespace, so only the last
    assistant message is checked for it.
    """
    issues = [
        ValidationIssue(
            IssueCode.empty_assistant,
            f"Assistant message at index {i} has empty content",
            index=i,
        )
        for i, message in enumerate(messages)
        if message.role == Role.assistant and _is_empty(message)
    ]

    last = _last_assistant_index(messages)
    if last is not None:
        text = _trailing_text(messages[last])
        if text is not None and text != text.rstrip():
            issues.append(ValidationIssue(
                IssueCode.assistant_trailing_whitespace,
                f"Last assistant message at index {last} has trailing whitespace",
                index=last,
            ))
    return issues


def validate_messages(messages: list[Message]) -> ValidationResult:
    """Run every structural check without repairing."""
    issues = (
        find_system_issues(messages)
        + find_tool_pairing_issues(messages)
        + find_sequence_issues(messages)
        + find_assistant_content_issues(messages)
    )
    return ValidationResult(
        valid=not issues,
        errors=[issue.message for issue in issues],
        issues=issues,
    )


def move_system_first(messages: list[Message]) -> list[Message]:
    """Fold every system message into a single one at the front."""
    system = [m for m in messages if m.role == Role.system]
    if not system or (len(system) == 1 and messages[0].role == Role.system):
        return list(messages)

    logger.debug(f"Consolidating {len(system)} system messages at the front")
    merged = system[0]
    for message in system[1:]:
        merged = merge_messages(merged, message)
    return [merged] + [m for m in messages if m.role != Role.system]


def remove_orphaned_tool_parts(messages: list[Message]) -> list[Message]:
    """Strip tool calls/results lacking a counterpart.

    Messages left without any content are dropped.
    """
    paired = call_ids(messages) & result_ids(messages)
    result: list[Message] = []

    for message in messages:
        if message.role not in (Role.assistant, Role.tool) or not message.has_parts:
            result.append(message)
            continue

        kept = []
        for part in message.parts:
            if isinstance(part, (ToolCallPart, ToolResultPart)) and part.id not in paired:
                logger.debug(f"Removing orphaned {type(part).__name__} {part.id} ({part.name})")
                continue
            kept.append(part)

        if kept:
            result.append(message.with_parts(kept))
        else:
            logger.debug(f"Dropping empty {message.role.value} message after orphan removal")

    return result


def remove_empty_assistant_messages(messages: list[Message]) -> list[Message]:
    result = [m for m in messages if not (m.role == Role.assistant and _is_empty(m))]
    if len(result) != len(messages):
        logger.debug(f"Removed {len(messages) - len(result)} empty assistant message(s)")
    return result


def trim_assistant_trailing_whitespace(messages: list[Message]) -> list[Message]:
    """Right-strip the final text of the last assistant message."""
    last = _last_assistant_index(messages)
    if last is None:
        return list(messages)

    message = messages[last]
    result = list(messages)
    if isinstance(message.content, str):
        result[last] = Message(message.role, message.content.rstrip())
        return result

    parts = list(message.parts)
    for j in range(len(parts) - 1, -1, -1):
        if isinstance(parts[j], TextPart) and parts[j].text:
            trimmed = parts[j].text.rstrip()
            parts[j] = TextPart(trimmed)
            if trimmed:
                break
    if parts != list(message.parts):
        result[last] = message.with_parts(parts)
    return result


def merge_messages(first: Message, second: Message) -> Message:
    """Merge two messages of the same role.

    Two text blocks join into one text block; otherwise the result is the
    concatenation of both part lists with empty text parts removed.
    """
    if isinstance(first.content, str) and isinstance(second.content, str):
        text = "\n\n".join(c for c in (first.content, second.content) if c.strip())
        return Message(first.role, text)

    parts = [
        p for p in _as_parts(first) + _as_parts(second)
        if not (isinstance(p, TextPart) and not p.text.strip())
    ]
    return first.with_parts(parts)


def merge_consecutive_messages(messages: list[Message]) -> list[Message]:
    """Merge runs of same-role messages (system messages are left alone)."""
    result: list[Message] = []
    for message in messages:
        last = result[-1] if result else None
        if last is not None and last.role == message.role and message.role != Role.system:
            result[-1] = merge_messages(last, message)
            logger.debug(f"Merged consecutive {message.role.value} messages")
        else:
            result.append(message)
    return result


def repair_messages(messages: list[Message]) -> list[Message]:
    """Apply every repair in an order where later steps cannot undo earlier ones.

    Orphan removal can leave whitespace-only assistant text behind, and
    dropping an empty assistant can bring two assistants together, so empties
    go before the merge. The trim runs last because a merge can change which
    text ends the final assistant message.
    """
    result = move_system_first(messages)
    result = remove_orphaned_tool_parts(result)
    result = remove_empty_assistant_messages(result)
    result = merge_consecutive_messages(result)
    return trim_assistant_trailing_whitespace(result)


def _is_empty(message: Message) -> bool:
    if isinstance(message.content, str):
        return not message.content.strip()
    return not any(
        isinstance(p, ToolCallPart) or (isinstance(p, TextPart) and p.text.strip())
        for p in message.parts
    )


def _last_assistant_index(messages: list[Message]) -> int | None:
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == Role.assistant:
            return i
    return None


def _trailing_text(message: Message) -> str | None:
    if isinstance(message.content, str):
        return message.content
    for part in reversed(message.parts):
        if isinstance(part, TextPart) and part.text:
            return part.text
    return None


def _as_parts(message: Message) -> list:
    if isinstance(message.content, str):
        return [TextPart(message.content)] if message.content.strip() else []
    return list(message.content)
