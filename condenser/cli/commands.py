"""CLI commands for condenser."""

import asyncio
import json
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from condenser import __logo__, __version__

app = typer.Typer(
    name="condenser",
    help=f"{__logo__} condenser - Conversation context compaction",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} condenser v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """condenser - Conversation context compaction."""
    pass


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _load_messages(path: Path):
    """Read a transcript: a JSON list of messages or {"messages": [...]}."""
    from condenser.messages import messages_from_dicts

    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        data = json.loads(path.read_text())
        if isinstance(data, dict):
            data = data.get("messages", [])
        return messages_from_dicts(data)
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        console.print(f"[red]Invalid transcript {path}: {e}[/red]")
        raise typer.Exit(1)


def _write_messages(path: Path, messages, **extra) -> None:
    from condenser.messages import messages_to_dicts

    data = {"messages": messages_to_dicts(messages), **extra}
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False))
    console.print(f"[green]✓[/green] Wrote {len(messages)} messages to {path}")


def _build_compactor(config):
    from condenser.compactor import ContextCompactor
    from condenser.providers.litellm_provider import LiteLLMProvider
    from condenser.summarizer import LLMSummarizer

    provider = LiteLLMProvider(default_model=config.compression.compression_model_id)
    return ContextCompactor.from_config(config, LLMSummarizer(provider))


# ============================================================================
# Inspect
# ============================================================================


@app.command()
def inspect(
    file: Path = typer.Argument(..., help="Transcript JSON file"),
    preserve: int = typer.Option(None, "--preserve", "-p", help="Recent messages to keep"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show what a compaction would summarize and keep, without calling a model."""
    from condenser.config.loader import load_config
    from condenser.tokens import estimate_messages_tokens

    _setup_logging(verbose)
    config = load_config(config_path)
    messages = _load_messages(file)
    compactor = _build_compactor(config)

    keep = preserve if preserve is not None else config.compression.preserve_recent_count
    selection = compactor.select_messages_to_compress(messages, keep)

    table = Table(title=f"Compaction preview: {file.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Messages", str(len(messages)))
    table.add_row("Estimated tokens", str(estimate_messages_tokens(messages)))
    table.add_row("To summarize", str(len(selection.to_compress)))
    table.add_row("Summarized tokens", str(estimate_messages_tokens(selection.to_compress)))
    table.add_row("Preserved", str(len(selection.preserved)))
    table.add_row("Redundant tool calls", str(len(selection.filtered_ids)))
    table.add_row("System prompt", "yes" if selection.original_system_message else "no")
    console.print(table)


# ============================================================================
# Check
# ============================================================================


@app.command()
def check(
    file: Path = typer.Argument(..., help="Transcript JSON file"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the repaired transcript here"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Validate message structure, optionally writing a repaired copy."""
    from condenser.validation import repair_messages, validate_messages

    _setup_logging(verbose)
    messages = _load_messages(file)
    validation = validate_messages(messages)

    if validation.valid:
        console.print(f"[green]✓[/green] {file.name}: {len(messages)} messages, no issues")
        return

    table = Table(title=f"Issues in {file.name}")
    table.add_column("Code", style="yellow", no_wrap=True)
    table.add_column("Index", justify="right")
    table.add_column("Tool call")
    table.add_column("Message")
    for issue in validation.issues:
        table.add_row(
            issue.code.value,
            "" if issue.index is None else str(issue.index),
            issue.tool_call_id or "",
            issue.message,
        )
    console.print(table)

    fixed = repair_messages(messages)
    if not validate_messages(fixed).valid:
        console.print("[red]Automatic repair could not fix all issues[/red]")
        raise typer.Exit(1)

    if output:
        _write_messages(output, fixed)
    else:
        console.print(f"[dim]Repairable: {len(messages)} → {len(fixed)} messages (use --output)[/dim]")
        raise typer.Exit(1)


# ============================================================================
# Compact
# ============================================================================


@app.command()
def compact(
    file: Path = typer.Argument(..., help="Transcript JSON file"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the result"),
    model: str = typer.Option(None, "--model", "-m", help="Model the transcript was sent to"),
    tokens: int = typer.Option(None, "--tokens", "-t", help="Last reported prompt token count"),
    force: bool = typer.Option(False, "--force", "-f", help="Compact even below the threshold"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Compact a transcript with the configured summarization model."""
    from condenser.config.loader import load_config
    from condenser.types import CompactedConversation
    from condenser.tokens import estimate_messages_tokens

    _setup_logging(verbose)
    config = load_config(config_path)
    messages = _load_messages(file)
    compactor = _build_compactor(config)

    model_id = model or config.model
    token_count = tokens if tokens is not None else estimate_messages_tokens(messages)

    async def run():
        if not force:
            return await compactor.perform_compression_if_needed(
                messages, config.compression, token_count, model_id,
                on_status=lambda status: console.print(f"[dim]{status}[/dim]"),
            )
        result = await compactor.compact_messages(messages, config.compression, token_count)
        compressed = compactor.create_compressed_messages(result)
        validation = compactor.validate_compressed_messages(compressed)
        final = validation.fixed_messages or compressed
        return CompactedConversation(messages=final, result=result)

    compacted = asyncio.run(run())

    if compacted is None:
        console.print(
            f"[yellow]No compaction needed[/yellow] ({token_count} tokens for {model_id}, "
            f"use --force to compact anyway)"
        )
        return

    result = compacted.result
    _write_messages(
        output,
        compacted.messages,
        summary=result.compressed_summary,
        sections=[{"title": s.title, "content": s.content} for s in result.sections],
        compression_ratio=result.compression_ratio,
    )
    if not result.compressed_summary:
        console.print("[yellow]Summarization skipped or failed, kept filtered messages[/yellow]")
    console.print(
        f"{__logo__} {result.original_message_count} → {len(compacted.messages)} messages "
        f"(ratio {result.compression_ratio:.2f})"
    )
