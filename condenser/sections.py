"""Parsing and condensing of structured summaries."""

import re

from loguru import logger

from condenser.types import CompressionSection

MAX_SUMMARY_LENGTH = 8000  # Max chars kept from a previous summary
MAX_SECTION_LENGTH = 500
IMPORTANT_SECTIONS = ("Pending Tasks", "Current Work", "Errors and fixes")

_ANALYSIS = re.compile(r"<analysis>([\s\S]*?)</analysis>")

# Tried in order; the first pattern with at least one match wins
_SECTION_PATTERNS = [
    re.compile(r"(\d+)\.\s+([^:\n]+):([\s\S]*?)(?=\n\d+\.|\Z)"),  # "1. Title: content"
    re.compile(r"(\d+)\)\s+([^:\n]+):([\s\S]*?)(?=\n\d+\)|\Z)"),  # "1) Title: content"
    re.compile(r"(\d+)\s+-\s+([^:\n]+):([\s\S]*?)(?=\n\d+\s+-|\Z)"),  # "1 - Title: content"
    re.compile(r"(\d+)\.\s+([^\n]+)\n([\s\S]*?)(?=\n\d+\.|\Z)"),  # "1. Title\ncontent"
]


def parse_sections(summary: str) -> list[CompressionSection]:
    """Split a summary into its analysis block and numbered sections.

    Never raises: unstructured text becomes a single "Summary" section.
    """
    sections: list[CompressionSection] = []
    try:
        analysis = _ANALYSIS.search(summary)
        if analysis and analysis.group(1).strip():
            sections.append(CompressionSection("Analysis", analysis.group(1).strip()))
        body = _ANALYSIS.sub("", summary, count=1)

        for pattern in _SECTION_PATTERNS:
            matches = list(pattern.finditer(body))
            if not matches:
                continue
            for match in matches:
                number, title, content = match.group(1), match.group(2), match.group(3)
                sections.append(CompressionSection(
                    f"{number}. {title.strip()}",
                    (content or "").strip() or "No content provided",
                ))
            return sections

        if summary.strip():
            logger.warning("Could not parse structured sections, using full summary")
            sections.append(CompressionSection("Summary", body.strip()))
    except Exception as e:
        logger.error(f"Error parsing compression sections: {e}")
        return [CompressionSection("Summary", summary)]

    return sections


def condense_previous_summary(summary: str) -> str:
    """Bound the size of a summary carried over from an earlier compaction."""
    if len(summary) <= MAX_SUMMARY_LENGTH:
        return summary

    condensed = ""
    for section in IMPORTANT_SECTIONS:
        pattern = re.compile(
            rf"\d+\.\s*{re.escape(section)}[:\s]([\s\S]*?)(?=\n\d+\.|\Z)", re.IGNORECASE,
        )
        match = pattern.search(summary)
        if match and match.group(1).strip():
            condensed += f"{section}: {match.group(1).strip()[:MAX_SECTION_LENGTH]}\n\n"

    if condensed:
        logger.info(f"Condensed previous summary: {len(summary)} → {len(condensed)} chars")
        return condensed

    return f"{summary[:MAX_SUMMARY_LENGTH]}..."
