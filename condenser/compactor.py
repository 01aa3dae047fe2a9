"""Context compaction engine for agent conversations."""

import asyncio
import json
from typing import Callable

from loguru import logger

from condenser.config.schema import CompressionConfig, Config, FilterConfig, RewriterConfig
from condenser.errors import CompactionCancelled
from condenser.filter import ContextFilter
from condenser.messages import (
    Message,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    assistant,
    user,
)
from condenser.models import get_context_length
from condenser.outcome import Outcome, attempt, attempt_sync
from condenser.prompts.compaction import (
    ACKNOWLEDGMENT,
    CONTINUE_INSTRUCTION,
    EARLIER_CONTEXT_DIVIDER,
    SUMMARY_MARKER,
)
from condenser.rewriter import CodeSummarizer, ContextRewriter
from condenser.sections import condense_previous_summary, parse_sections
from condenser.summarizer import Summarizer
from condenser.tokens import estimate_tokens
from condenser.types import (
    CompactedConversation,
    CompressionResult,
    CompressionStats,
    Selection,
    ValidationResult,
)
from condenser.validation import repair_messages, validate_messages


class ContextCompactor:
    """Keeps a conversation within its model's context budget.

    Older messages are deduplicated, their code payloads shrunk, and the rest
    summarized by an LLM; the most recent messages, the system prompt and the
    latest state-carrying tool calls are kept verbatim. The rebuilt list is
    validated and repaired before it goes back to the agent loop.

    One instance per agent loop. Calls for a conversation must be serialized
    by the caller; only the stats counters are mutable.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        code_summarizer: CodeSummarizer | None = None,
        token_estimator: Callable[[str], int] = estimate_tokens,
        filter_config: FilterConfig | None = None,
        rewriter_config: RewriterConfig | None = None,
        context_lengths: dict[str, int] | None = None,
    ):
        self.summarizer = summarizer
        self.token_estimator = token_estimator
        self.context_lengths = context_lengths or {}
        filter_config = filter_config or FilterConfig()
        self.preserve_tool_names = list(filter_config.singleton_tools)
        self.message_filter = ContextFilter(filter_config)
        self.message_rewriter = ContextRewriter(code_summarizer, rewriter_config, filter_config)
        self._stats = CompressionStats()

    @classmethod
    def from_config(
        cls,
        config: Config,
        summarizer: Summarizer,
        code_summarizer: CodeSummarizer | None = None,
    ) -> "ContextCompactor":
        return cls(
            summarizer,
            code_summarizer,
            filter_config=config.filter,
            rewriter_config=config.rewriter,
            context_lengths=config.context_lengths,
        )

    # ── predicate ──────────────────────────────────────────────

    def should_compress(
        self,
        config: CompressionConfig,
        last_known_token_count: int | None,
        current_model_id: str | None,
    ) -> bool:
        """Check if the last request came close enough to the context limit."""
        if not config.enabled:
            return False

        if not last_known_token_count:
            logger.debug("No token count available, skipping compression check")
            return False

        max_context = get_context_length(current_model_id, self.context_lengths)
        threshold = max_context * config.compression_threshold

        if last_known_token_count > threshold:
            logger.info(
                f"Compression triggered: {last_known_token_count} tokens > "
                f"{threshold:.0f} ({config.compression_threshold:.0%} of {max_context} "
                f"for {current_model_id})"
            )
            return True
        return False

    # ── selection ──────────────────────────────────────────────

    def select_messages_to_compress(
        self, messages: list[Message], preserve_recent_count: int,
    ) -> Selection:
        """Split messages into what gets summarized and what is kept verbatim."""
        system_message = None
        rest = list(messages)
        if rest and rest[0].role == Role.system:
            system_message, rest = rest[0], rest[1:]

        preserve_count = self._adjust_preserve_boundary(
            rest, min(preserve_recent_count, len(rest)),
        )
        cut = len(rest) - preserve_count
        recent, to_compress = rest[cut:], rest[:cut]

        to_compress, critical = self._extract_last_tool_calls(to_compress, self.preserve_tool_names)
        filtered_ids = self.message_filter.collect_ids_to_filter(to_compress)
        to_compress = self.message_filter.filter_messages(to_compress)

        preserved = critical + recent
        if system_message is not None:
            preserved = [system_message] + preserved

        return Selection(to_compress, preserved, system_message, filtered_ids)

    def _adjust_preserve_boundary(self, messages: list[Message], preserve_count: int) -> int:
        """Grow the preserved tail so no kept tool result loses its call."""
        cut = len(messages) - preserve_count
        if cut <= 0:
            return preserve_count

        kept_results = {
            p.id for m in messages[cut:] if m.role == Role.tool for p in m.tool_results()
        }
        if not kept_results:
            return preserve_count

        adjusted = cut
        for i in range(cut - 1, -1, -1):
            message = messages[i]
            if message.role == Role.assistant and any(
                c.id in kept_results for c in message.tool_calls()
            ):
                adjusted = i

        if adjusted != cut:
            logger.info(
                f"Adjusted preserve boundary from {preserve_count} to "
                f"{len(messages) - adjusted} messages to keep tool pairs together"
            )
        return len(messages) - adjusted

    @staticmethod
    def _extract_last_tool_calls(
        messages: list[Message], tool_names: list[str],
    ) -> tuple[list[Message], list[Message]]:
        """Pull the last call of each named tool, and its result, out of messages.

        Returns (remaining, extracted).
        """
        wanted = set(tool_names)
        found: dict[str, str] = {}
        for message in reversed(messages):
            if message.role != Role.assistant:
                continue
            for call in message.tool_calls():
                if call.name in wanted and call.name not in found:
                    found[call.name] = call.id
            if len(found) == len(wanted):
                break

        if not found:
            return messages, []

        ids = set(found.values())
        remaining: list[Message] = []
        extracted: list[Message] = []
        for message in messages:
            if message.role not in (Role.assistant, Role.tool) or not message.has_parts:
                remaining.append(message)
                continue
            taken, left = [], []
            for part in message.parts:
                critical = isinstance(part, (ToolCallPart, ToolResultPart)) and part.id in ids
                (taken if critical else left).append(part)
            if taken:
                extracted.append(message.with_parts(taken))
            if left:
                remaining.append(message.with_parts(left))

        logger.info(f"Extracted critical tool calls for preservation: {sorted(found)}")
        return remaining, extracted

    # ── compaction ─────────────────────────────────────────────

    async def compact_messages(
        self,
        messages: list[Message],
        config: CompressionConfig,
        last_known_token_count: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CompressionResult:
        """Compress the older part of a conversation.

        Collaborator failures fall back to sending the filtered and rewritten
        messages without a summary. Raises CompactionCancelled if
        ``cancel_event`` fires while the summarizer is running.
        """
        logger.info(
            f"Starting compaction of {len(messages)} messages "
            f"(preserving {config.preserve_recent_count} recent)"
        )

        selection = self.select_messages_to_compress(messages, config.preserve_recent_count)
        preserved = selection.preserved

        rewritten = await attempt(
            self.message_rewriter.rewrite_messages(selection.to_compress),
            "Message rewriting",
        )
        to_compress = rewritten.value if rewritten.ok else selection.to_compress

        if not to_compress:
            logger.info("No messages to compress, returning preserved messages")
            kept = preserved or list(messages)
            return CompressionResult(
                compressed_summary="",
                sections=[],
                preserved_messages=kept,
                original_message_count=len(messages),
                compressed_message_count=len(kept),
                compression_ratio=len(preserved) / len(messages) if preserved else 1.0,
            )

        transcript = self.messages_to_text(to_compress)

        estimated: int | None = None
        if last_known_token_count and last_known_token_count > 0:
            estimate = attempt_sync(self.token_estimator, transcript, what="Token estimation")
            if estimate.ok:
                estimated = estimate.value
                reduction = 1 - estimated / last_known_token_count
                if reduction >= config.early_exit_reduction:
                    logger.info(
                        f"Token reduction {reduction:.1%} >= {config.early_exit_reduction:.0%}, "
                        f"skipping AI compression"
                    )
                    return self._uncompressed(
                        messages, selection, to_compress, estimated / last_known_token_count,
                    )
                logger.info(f"Token reduction {reduction:.1%}, proceeding with AI compression")

        summary = await self._summarize(transcript, config, cancel_event)
        if not summary.ok:
            ratio = estimated / last_known_token_count if estimated is not None else 1.0
            logger.warning("AI compression failed, sending rewritten messages uncompressed")
            return self._uncompressed(messages, selection, to_compress, ratio)

        result = CompressionResult(
            compressed_summary=summary.value,
            sections=parse_sections(summary.value),
            preserved_messages=preserved,
            original_message_count=len(messages),
            compressed_message_count=1 + len(preserved),
            compression_ratio=(1 + len(preserved)) / len(messages),
        )
        self._update_stats(result)

        logger.info(
            f"Compaction completed: {result.original_message_count} → "
            f"{result.compressed_message_count} messages (ratio {result.compression_ratio:.2f})"
        )
        return result

    async def _summarize(
        self,
        transcript: str,
        config: CompressionConfig,
        cancel_event: asyncio.Event | None,
    ) -> Outcome[str]:
        """Run the summarizer, racing it against cancellation and the timeout."""

        async def run() -> str:
            task = asyncio.ensure_future(self.summarizer.summarize(
                transcript, config.compression_model_id, cancel_event,
            ))
            waiter = asyncio.ensure_future(
                cancel_event.wait() if cancel_event else asyncio.Event().wait()
            )
            try:
                done, _ = await asyncio.wait(
                    {task, waiter},
                    timeout=config.timeout_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                waiter.cancel()
                if not task.done():
                    task.cancel()

            if task in done:
                return task.result()
            if waiter in done:
                logger.info("Compaction cancelled during summarization")
                raise CompactionCancelled("Compaction cancelled")
            raise TimeoutError(f"Compression timeout after {config.timeout_seconds}s")

        if cancel_event is not None and cancel_event.is_set():
            raise CompactionCancelled("Compaction cancelled")
        return await attempt(run(), "AI compression")

    @staticmethod
    def _uncompressed(
        messages: list[Message],
        selection: Selection,
        to_compress: list[Message],
        ratio: float,
    ) -> CompressionResult:
        """Keep everything, with the system prompt still in front."""
        preserved = selection.preserved
        if selection.original_system_message is not None:
            kept = preserved[:1] + to_compress + preserved[1:]
        else:
            kept = to_compress + preserved
        return CompressionResult(
            compressed_summary="",
            sections=[],
            preserved_messages=kept,
            original_message_count=len(messages),
            compressed_message_count=len(kept),
            compression_ratio=ratio,
        )

    @staticmethod
    def messages_to_text(messages: list[Message]) -> str:
        """Flatten messages into the role-tagged transcript sent for summarization."""
        blocks = []
        for message in messages:
            if isinstance(message.content, str):
                content = message.content
            else:
                lines = []
                for part in message.content:
                    if isinstance(part, TextPart):
                        lines.append(part.text)
                    elif isinstance(part, ToolCallPart):
                        lines.append(f"[TOOL CALL: {part.name}({_to_json(part.input)})]")
                    elif isinstance(part, ToolResultPart):
                        lines.append(f"[TOOL RESULT: {part.name} -> {_to_json(part.output)}]")
                content = "\n".join(lines)
            blocks.append(f"{message.role.value.upper()}: {content}")
        return "\n\n".join(blocks)

    # ── reconstruction ─────────────────────────────────────────

    def create_compressed_messages(self, result: CompressionResult) -> list[Message]:
        """Rebuild the message list around the summary.

        The summary travels as a user message followed by an assistant
        acknowledgment, so it never rides on the system role.
        """
        preserved = result.preserved_messages
        compressed: list[Message] = []
        start = 0

        if preserved and preserved[0].role == Role.system and not _is_summary(preserved[0]):
            compressed.append(preserved[0])
            start = 1

        folded: set[int] = set()
        if result.compressed_summary:
            summary = result.compressed_summary
            for i in range(start, len(preserved)):
                if _is_summary(preserved[i]):
                    previous = condense_previous_summary(_unwrap_summary(preserved[i].content))
                    summary = f"{summary}{EARLIER_CONTEXT_DIVIDER}{previous}"
                    folded.add(i)
                    following = preserved[i + 1] if i + 1 < len(preserved) else None
                    if following is not None and _is_acknowledgment(following):
                        folded.add(i + 1)
                    break

            compressed.append(user(f"{SUMMARY_MARKER}\n\n{summary}\n\n{CONTINUE_INSTRUCTION}"))
            compressed.append(assistant(ACKNOWLEDGMENT))

        for i in range(start, len(preserved)):
            if i in folded:
                continue
            if preserved[i].role == Role.system and _is_summary(preserved[i]):
                continue
            compressed.append(preserved[i])

        logger.info(
            f"Created {len(compressed)} compressed messages "
            f"(system prompt: {start == 1}, summary: {bool(result.compressed_summary)})"
        )
        return compressed

    # ── validation ─────────────────────────────────────────────

    def validate_compressed_messages(self, messages: list[Message]) -> ValidationResult:
        """Check invariants and, when broken, attach a repaired list."""
        validation = validate_messages(messages)
        if validation.valid:
            return validation

        logger.warning(f"Compressed messages validation failed: {validation.errors}")
        fixed = repair_messages(messages)
        if validate_messages(fixed).valid:
            validation.fixed_messages = fixed
        else:
            logger.warning("Auto-fix did not produce a valid message list")
        return validation

    # ── workflow ───────────────────────────────────────────────

    async def perform_compression_if_needed(
        self,
        messages: list[Message],
        config: CompressionConfig,
        last_known_token_count: int | None,
        current_model_id: str | None,
        cancel_event: asyncio.Event | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> CompactedConversation | None:
        """Check, compress, rebuild and validate in one step.

        Returns None when no compaction is needed.
        """
        if not self.should_compress(config, last_known_token_count, current_model_id):
            return None

        if on_status:
            on_status("Compacting messages...")

        result = await self.compact_messages(
            messages, config, last_known_token_count, cancel_event,
        )
        compressed = self.create_compressed_messages(result)
        validation = self.validate_compressed_messages(compressed)

        final = compressed
        if not validation.valid:
            if validation.fixed_messages is not None:
                final = validation.fixed_messages
                logger.info(
                    f"Applied auto-fix to compressed messages: "
                    f"{len(compressed)} → {len(final)}"
                )
            else:
                logger.warning("No auto-fix available, using compressed messages as-is")

        logger.info(
            f"Message compression completed: {result.original_message_count} → "
            f"{len(final)} messages, validation passed: {validation.valid}"
        )
        return CompactedConversation(messages=final, result=result)

    # ── stats ──────────────────────────────────────────────────

    def get_compression_stats(self) -> CompressionStats:
        return CompressionStats(
            self._stats.total_compressions, self._stats.average_compression_ratio,
        )

    def _update_stats(self, result: CompressionResult) -> None:
        stats = self._stats
        stats.total_compressions += 1
        n = stats.total_compressions
        stats.average_compression_ratio = (
            stats.average_compression_ratio * (n - 1) + result.compression_ratio
        ) / n


def _to_json(value) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _is_summary(message: Message) -> bool:
    return (
        message.role in (Role.system, Role.user)
        and isinstance(message.content, str)
        and SUMMARY_MARKER in message.content
    )


def _is_acknowledgment(message: Message) -> bool:
    return message.role == Role.assistant and message.content == ACKNOWLEDGMENT


def _unwrap_summary(text: str) -> str:
    """Strip the marker and continuation line added by reconstruction."""
    text = text.replace(SUMMARY_MARKER, "", 1).strip()
    if text.endswith(CONTINUE_INSTRUCTION):
        text = text[: -len(CONTINUE_INSTRUCTION)].rstrip()
    return text
