"""Deduplication and pruning of stale tool calls."""

import json
from typing import Any

from loguru import logger

from condenser.config.schema import FilterConfig
from condenser.messages import Message, Role, TextPart, ToolCallPart, parse_input


class ContextFilter:
    """Drops tool-call/tool-result pairs that no longer carry information.

    Four marking passes collect tool-call ids into a single delete-set:
    duplicate file reads, exploratory calls outside the protection window,
    superseded singleton tools, and exact duplicate calls. A removal pass then
    strips the marked calls together with their results.
    """

    def __init__(self, config: FilterConfig | None = None):
        self.config = config or FilterConfig()
        self.exploratory_tools = set(self.config.exploratory_tools)
        self.singleton_tools = set(self.config.singleton_tools)

    def filter_messages(self, messages: list[Message]) -> list[Message]:
        """Return a filtered copy of ``messages``."""
        logger.debug(
            f"Filtering {len(messages)} messages, "
            f"{sum(len(m.tool_calls()) for m in messages)} tool calls"
        )

        ids = self.collect_ids_to_filter(messages)
        if not ids:
            return list(messages)

        filtered = self.remove_tool_calls(messages, ids)
        removed = len(messages) - len(filtered)
        logger.info(f"Filtered {len(ids)} tool call pairs ({removed} messages removed)")
        return filtered

    def collect_ids_to_filter(self, messages: list[Message]) -> set[str]:
        ids: set[str] = set()
        self._mark_duplicate_reads(messages, ids)
        self._mark_exploratory_calls(messages, ids)
        self._mark_singleton_calls(messages, ids)
        self._mark_exact_duplicates(messages, ids)
        return ids

    # ── marking passes ─────────────────────────────────────────

    def _mark_duplicate_reads(self, messages: list[Message], ids: set[str]) -> None:
        latest: dict[str, str] = {}
        for call in self._calls(messages):
            if call.name != self.config.read_tool or call.id in ids:
                continue
            key = self.file_read_key(call)
            if key is None:
                continue
            previous = latest.get(key)
            if previous:
                ids.add(previous)
                logger.debug(f"Marking duplicate read for removal: {key}")
            latest[key] = call.id

    def _mark_exploratory_calls(self, messages: list[Message], ids: set[str]) -> None:
        threshold = max(0, len(messages) - self.config.protection_window)
        for index, message in enumerate(messages[:threshold]):
            if message.role != Role.assistant:
                continue
            for call in message.tool_calls():
                if call.name in self.exploratory_tools and call.id not in ids:
                    ids.add(call.id)
                    logger.debug(f"Marking exploratory {call.name} at index {index} for removal")

    def _mark_singleton_calls(self, messages: list[Message], ids: set[str]) -> None:
        latest: dict[str, str] = {}
        for call in self._calls(messages):
            if call.name not in self.singleton_tools or call.id in ids:
                continue
            previous = latest.get(call.name)
            if previous:
                ids.add(previous)
                logger.debug(f"Marking superseded {call.name} for removal")
            latest[call.name] = call.id

    def _mark_exact_duplicates(self, messages: list[Message], ids: set[str]) -> None:
        latest: dict[str, str] = {}
        for call in self._calls(messages):
            if call.id in ids:
                continue
            signature = self.call_signature(call)
            if signature is None:
                continue
            previous = latest.get(signature)
            if previous:
                ids.add(previous)
                logger.debug(f"Marking exact duplicate {call.name} ({previous}) for removal")
            latest[signature] = call.id

    # ── removal ────────────────────────────────────────────────

    def remove_tool_calls(self, messages: list[Message], ids: set[str]) -> list[Message]:
        """Drop marked tool calls and results, discarding emptied messages."""
        result: list[Message] = []
        for message in messages:
            if message.role == Role.assistant and message.has_parts:
                kept = [
                    p for p in message.parts
                    if not (isinstance(p, ToolCallPart) and p.id in ids)
                ]
                if any(isinstance(p, ToolCallPart) for p in kept):
                    result.append(message.with_parts(kept))
                elif self.config.keep_narration:
                    text = [p for p in kept if isinstance(p, TextPart) and p.text.strip()]
                    if text:
                        result.append(message.with_parts(text))
            elif message.role == Role.tool and message.has_parts:
                kept = [p for p in message.parts if getattr(p, "id", None) not in ids]
                if kept:
                    result.append(message.with_parts(kept))
            else:
                result.append(message)
        return result

    # ── helpers ────────────────────────────────────────────────

    @staticmethod
    def _calls(messages: list[Message]):
        for message in messages:
            if message.role == Role.assistant:
                yield from message.tool_calls()

    @staticmethod
    def file_read_key(call: ToolCallPart) -> str | None:
        """Key a read by file path and line range."""
        try:
            data = parse_input(call.input)
        except json.JSONDecodeError as e:
            logger.warning(f"Unreadable input on {call.name} call {call.id}: {e}")
            return None
        if not isinstance(data, dict):
            return None

        path = data.get("file_path") or data.get("filePath") or data.get("path")
        if not path:
            return None
        start = data.get("start_line")
        count = data.get("line_count")
        return f"{path}:{'full' if start is None else start}:{'full' if count is None else count}"

    @staticmethod
    def call_signature(call: ToolCallPart) -> str | None:
        """Name plus key-order-independent JSON of the call input."""
        try:
            data = parse_input(call.input)
            return f"{call.name}:{json.dumps(_sort_keys(data), sort_keys=True, default=str)}"
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Could not build signature for {call.name} call {call.id}: {e}")
            return None


def _sort_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sort_keys(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, list):
        return [_sort_keys(v) for v in value]
    return value
