"""Exception types raised by condenser."""


class CondenserError(Exception):
    """Base class for condenser errors."""


class SummarizationError(CondenserError):
    """The summarization collaborator could not produce a summary."""


class CompactionCancelled(CondenserError):
    """Compaction was aborted through its cancellation signal."""
