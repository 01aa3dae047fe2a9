"""Result types for compaction."""

from dataclasses import dataclass, field
from enum import Enum

from condenser.messages import Message


@dataclass
class CompressionSection:
    title: str
    content: str


@dataclass
class CompressionResult:
    """Outcome of one compaction run, consumed by reconstruction."""

    compressed_summary: str
    sections: list[CompressionSection]
    preserved_messages: list[Message]
    original_message_count: int
    compressed_message_count: int
    compression_ratio: float


@dataclass
class CompressionStats:
    total_compressions: int = 0
    average_compression_ratio: float = 0.0


@dataclass
class Selection:
    """Split of a conversation into the part to summarize and the part to keep."""

    to_compress: list[Message]
    preserved: list[Message]
    original_system_message: Message | None = None
    # Tool call ids the filter dropped from the summarized prefix
    filtered_ids: set[str] = field(default_factory=set)


@dataclass
class CompactedConversation:
    """Final, validated messages plus the raw result for telemetry."""

    messages: list[Message]
    result: CompressionResult


class IssueCode(str, Enum):
    orphaned_tool_call = "ORPHANED_TOOL_CALL"
    orphaned_tool_result = "ORPHANED_TOOL_RESULT"
    consecutive_assistant = "CONSECUTIVE_ASSISTANT"
    scattered_system = "SCATTERED_SYSTEM"
    empty_assistant = "EMPTY_ASSISTANT"
    assistant_trailing_whitespace = "ASSISTANT_TRAILING_WHITESPACE"


@dataclass
class ValidationIssue:
    code: IssueCode
    message: str
    index: int | None = None
    tool_call_id: str | None = None


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    fixed_messages: list[Message] | None = None
    issues: list[ValidationIssue] = field(default_factory=list)
