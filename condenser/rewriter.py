"""Shrinks oversized code payloads in file read/write tool traffic."""

import json
from dataclasses import dataclass, replace
from pathlib import PurePosixPath
from typing import Any, Awaitable, Protocol

from loguru import logger

from condenser.config.schema import FilterConfig, RewriterConfig
from condenser.messages import ContentPart, Message, Role, ToolCallPart, ToolResultPart
from condenser.outcome import attempt

LANGUAGES = {
    "ts": "typescript",
    "mts": "typescript",
    "cts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "jsx": "javascript",
    "py": "python",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
}


def get_lang_id(file_path: str) -> str | None:
    """Resolve a language id from a file extension."""
    suffix = PurePosixPath(file_path).suffix.lower().lstrip(".")
    return LANGUAGES.get(suffix)


def compressed_marker(original_lines: int) -> str:
    return f"[COMPRESSED: {original_lines} lines → summarized]"


@dataclass
class CodeSummary:
    """Answer of a code summarizer."""
    success: bool
    summary: str
    original_lines: int
    lang_id: str | None = None


class CodeSummarizer(Protocol):
    def __call__(self, content: str, lang_id: str, file_path: str) -> Awaitable[CodeSummary]:
        ...


class ContextRewriter:
    """Replaces large file contents with signature-level summaries.

    Handles read-tool results and write-tool calls whose content exceeds the
    line threshold. Every failure leaves the original part in place.
    """

    def __init__(
        self,
        code_summarizer: CodeSummarizer | None = None,
        config: RewriterConfig | None = None,
        tools: FilterConfig | None = None,
    ):
        self.code_summarizer = code_summarizer
        self.config = config or RewriterConfig()
        tools = tools or FilterConfig()
        self.read_tool = tools.read_tool
        self.write_tool = tools.write_tool

    async def rewrite_messages(self, messages: list[Message]) -> list[Message]:
        if self.code_summarizer is None or not self.config.enabled:
            return list(messages)

        result: list[Message] = []
        for message in messages:
            if message.role in (Role.tool, Role.assistant) and message.has_parts:
                parts = [await self._rewrite_part(p) for p in message.parts]
                result.append(message.with_parts(parts))
            else:
                result.append(message)
        return result

    async def _rewrite_part(self, part: ContentPart) -> ContentPart:
        if isinstance(part, ToolResultPart) and part.name == self.read_tool:
            return await self._rewrite_read_result(part)
        if isinstance(part, ToolCallPart) and part.name == self.write_tool:
            return await self._rewrite_write_call(part)
        return part

    async def _rewrite_read_result(self, part: ToolResultPart) -> ToolResultPart:
        payload, wrap = _unwrap_read_output(part.output)
        if payload is None:
            return part
        content = payload.get("content")
        file_path = payload.get("file_path")
        if not payload.get("success") or not content or not file_path:
            return part
        if not isinstance(content, str) or not isinstance(file_path, str):
            return part

        summary = await self._summarize(content, file_path)
        if summary is None:
            return part

        message = payload.get("message") or ""
        rewritten = {
            **payload,
            "content": summary.summary,
            "message": f"{message} {compressed_marker(summary.original_lines)}".strip(),
        }
        logger.info(
            f"Compressed {self.read_tool} result for {payload['file_path']}: "
            f"{summary.original_lines} lines → {_line_count(summary.summary)}"
        )
        return replace(part, output=wrap(rewritten))

    async def _rewrite_write_call(self, part: ToolCallPart) -> ToolCallPart:
        data = part.input
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse {self.write_tool} input for call {part.id}: {e}")
                return part
        if not isinstance(data, dict):
            return part

        file_path = data.get("file_path")
        content = data.get("content")
        if not file_path or not isinstance(content, str):
            return part

        summary = await self._summarize(content, file_path)
        if summary is None:
            return part

        reduction = round((1 - len(summary.summary) / len(content)) * 100)
        logger.info(
            f"Compressed {self.write_tool} call for {file_path}: "
            f"{summary.original_lines} lines, {reduction}% fewer chars"
        )
        return replace(part, input={
            "file_path": file_path,
            "content": f"{summary.summary}\n{compressed_marker(summary.original_lines)}",
        })

    async def _summarize(self, content: str, file_path: str) -> CodeSummary | None:
        """Summarize content over the threshold, or None to keep it."""
        if _line_count(content) <= self.config.line_threshold:
            return None

        lang_id = get_lang_id(file_path)
        if not lang_id:
            return None

        async def call():
            return await self.code_summarizer(content, lang_id, file_path)

        outcome = await attempt(call(), f"Code summarization of {file_path}")
        if not outcome.ok or not outcome.value.success:
            return None
        return outcome.value


def _line_count(text: str) -> int:
    return len(text.split("\n"))


def _unwrap_read_output(output: Any):
    """Decode a read result into its payload and a function re-wrapping it.

    Supported shapes: ``{"type": "text", "value": "<json>"}``, a JSON string,
    or the payload dict itself.
    """
    if isinstance(output, dict) and output.get("type") == "text":
        value = output.get("value")
        if not isinstance(value, str):
            return None, None
        payload = _loads_dict(value)
        return payload, lambda p: {**output, "value": json.dumps(p, indent=2)}
    if isinstance(output, str):
        return _loads_dict(output), lambda p: json.dumps(p, indent=2)
    if isinstance(output, dict):
        return output, lambda p: p
    return None, None


def _loads_dict(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
