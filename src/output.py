"""Rich console output and markdown file save for comparisons and sessions."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from src.models import CallFailure, ComparisonResult, ModelConfig, ModelResponse, Turn
from src.turns import TurnSequencer

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _stats_line(response: ModelResponse) -> str:
    parts = [f"{response.response_time_ms / 1000:.1f}s"]
    if response.token_usage is not None:
        parts.append(f"{response.token_usage.input}+{response.token_usage.output} tokens")
    if response.cost is not None:
        parts.append(f"${response.cost.total:.4f}")
    return " | ".join(parts)


def print_models(models: list[ModelConfig]) -> None:
    """Print the model catalog as a table."""
    table = Table(title="Available models")
    table.add_column("ID", style="bold")
    table.add_column("Provider")
    table.add_column("Reasoning", justify="center")
    table.add_column("$ in / out per 1M", justify="right")
    table.add_column("Max tokens", justify="right")
    for model in models:
        table.add_row(
            model.id,
            model.provider,
            "yes" if model.capabilities.reasoning else "",
            f"{model.pricing.input_per_million:g} / {model.pricing.output_per_million:g}",
            str(model.limits.max_tokens),
        )
    console.print(table)


def print_comparison(results: ComparisonResult) -> None:
    """Print one panel per model; failures in red."""
    console.print(Rule("[bold cyan]Comparison[/bold cyan]"))
    for model_id, outcome in results.items():
        if isinstance(outcome, CallFailure):
            console.print(
                Panel(
                    outcome.message,
                    title=f"[bold]{model_id}[/bold]",
                    subtitle=outcome.kind.value,
                    border_style="red",
                )
            )
            continue
        console.print(
            Panel(
                Markdown(outcome.content),
                title=f"[bold]{model_id}[/bold] ({outcome.model_config.provider})",
                subtitle=_stats_line(outcome),
                border_style="dim",
            )
        )


def print_turn(turn: Turn, session: TurnSequencer) -> None:
    seat = next((s for s in session.seats if s.id == turn.seat_id), None)
    label = f"{seat.role} " if seat and seat.role else ""
    console.print(
        Panel(
            Markdown(turn.content),
            title=f"[bold]Turn {turn.id.rsplit('-', 1)[-1]}[/bold] {label}({turn.model_id})",
            subtitle=_stats_line(turn.response),
            border_style="dim",
        )
    )


def print_session_summary(session: TurnSequencer) -> None:
    console.print(
        Text(
            f"Mode: {session.mode.value} | "
            f"Turns: {len(session.transcript)} | "
            f"Status: {session.status.value} | "
            f"Cost: ${session.total_cost():.4f}",
            style="dim",
        )
    )


def save_transcript(session: TurnSequencer, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save a session transcript as a markdown file.

    Args:
        session: The session to save; its transcript is read, not modified.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the topic.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(session.topic)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    seats = ", ".join(
        f"{s.model_id} ({s.role})" if s.role else s.model_id for s in session.seats
    )
    lines: list[str] = [
        f"# {session.mode.value.title()}: {session.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Seats:** {seats}",
    ]
    if session.intensity is not None:
        lines.append(f"**Intensity:** {session.intensity.heading}")
    lines += [
        f"**Turns:** {len(session.transcript)}",
        f"**Total cost:** ${session.total_cost():.4f}",
        "",
        "---",
        "",
    ]

    for turn in session.transcript:
        lines.append(f"## Round {turn.round}: {turn.model_id} ({turn.type.value})")
        lines.append("")
        if turn.rebuts:
            lines.append(f"*In reply to {turn.rebuts}*")
            lines.append("")
        lines.append(turn.content)
        lines.append("")
        if turn.reasoning:
            lines.append("<details><summary>Reasoning</summary>")
            lines.append("")
            lines.append(turn.reasoning)
            lines.append("")
            lines.append("</details>")
            lines.append("")
        lines.append(f"*{_stats_line(turn.response)}*")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
