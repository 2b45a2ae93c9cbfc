"""Click CLI: loads config, builds the registry, runs comparisons and sessions."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from src.compare import ComparisonOrchestrator
from src.errors import ModelCompareError
from src.models import CallFailure, ComparisonResult, Turn
from src.output import print_comparison, print_models, print_session_summary, print_turn, save_transcript
from src.registry import ProviderRegistry, build_registry
from src.turns import SessionMode, TurnSequencer

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _parse_models(models_arg: str | None, fallback: list[str]) -> list[str]:
    """--models overrides the configured panel."""
    if models_arg:
        return [m.strip() for m in models_arg.split(",") if m.strip()]
    return list(fallback)


def _load(ctx: click.Context) -> tuple[AppConfig, ProviderRegistry]:
    try:
        config_path = ctx.obj.get("config_path")
        config = load_config(config_path) if config_path else load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)
    registry = build_registry(config)
    if not registry.providers():
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)
    return config, registry


async def _run_compare(registry: ProviderRegistry, prompt: str, model_ids: list[str]) -> ComparisonResult:
    orchestrator = ComparisonOrchestrator(registry)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Asking {len(model_ids)} models...", total=None)
        return await orchestrator.compare(prompt, model_ids)


async def _run_session(
    session: TurnSequencer,
    turns: int,
    seat_order: list[str] | None,
) -> CallFailure | None:
    """Advance ``turns`` times, printing each turn. Returns the failure that stopped it, if any."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Waiting for opening...", total=None)
        failures: list[CallFailure] = []

        def _on_turn(turn: Turn) -> None:
            done = len(session.transcript)
            progress.print(f"[green]OK[/green] {turn.model_id} finished turn {done}")
            progress.update(task, description=f"Turn {done + 1} of {turns}...")

        await session.auto_advance(turns, on_turn=_on_turn, seat_order=seat_order, on_failure=failures.append)
    return failures[0] if failures else None


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Model Compare -- ask several LLMs the same thing, or let them argue.

    \b
    Examples:
      model-compare models
      model-compare compare "Explain CRDTs in one paragraph" --models gpt-5-mini,claude-3-5-haiku
      model-compare debate "Remote work beats office work" --models gpt-5,grok-4-0709 --turns 4
      model-compare serve --port 8000
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--reasoning", "reasoning_only", is_flag=True, help="Only list reasoning models")
@click.pass_context
def models(ctx: click.Context, reasoning_only: bool) -> None:
    """List the models of every configured provider."""
    _, registry = _load(ctx)
    print_models(registry.reasoning_models() if reasoning_only else registry.list_models())


@main.command()
@click.argument("prompt")
@click.option("--models", "models_arg", default=None, help="Comma-separated model ids (default: compare_panel)")
@click.pass_context
def compare(ctx: click.Context, prompt: str, models_arg: str | None) -> None:
    """Send PROMPT to several models at once."""
    config, registry = _load(ctx)
    model_ids = _parse_models(models_arg, config.defaults.compare_panel)
    if not model_ids:
        console.print("[bold red]Error:[/bold red] No models selected. Use --models.")
        sys.exit(1)

    try:
        results = asyncio.run(_run_compare(registry, prompt, model_ids))
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    print_comparison(results)
    failed = sum(isinstance(o, CallFailure) for o in results.values())
    total = sum(o.cost.total for o in results.values() if not isinstance(o, CallFailure) and o.cost)
    console.print(f"\n[dim]{len(results) - failed}/{len(results)} succeeded | Cost: ${total:.4f}[/dim]")


@main.command()
@click.argument("topic")
@click.option("--models", "models_arg", required=True, help="Comma-separated model ids, one per seat")
@click.option("--mode", type=click.Choice([m.value for m in SessionMode]), default=SessionMode.DEBATE.value,
              show_default=True)
@click.option("--intensity", type=int, default=None, help="Adversarial intensity 1-4 (default: from config)")
@click.option("--turns", type=int, default=4, show_default=True, help="Number of turns to run")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--no-save", is_flag=True, help="Do not write a markdown transcript")
@click.pass_context
def debate(
    ctx: click.Context,
    topic: str,
    models_arg: str,
    mode: str,
    intensity: int | None,
    turns: int,
    output_path: str | None,
    no_save: bool,
) -> None:
    """Run a turn-based session on TOPIC.

    Debate mode alternates two seats; battle and creative modes cycle
    through the given models in order.
    """
    config, registry = _load(ctx)
    model_ids = _parse_models(models_arg, [])
    session_mode = SessionMode(mode)
    if intensity is None and session_mode is SessionMode.DEBATE:
        intensity = config.defaults.intensity

    session = TurnSequencer(registry, config.prompts)
    try:
        session.start(topic, model_ids, session_mode, intensity)
    except (ValueError, ModelCompareError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    seat_order = None if session_mode is SessionMode.DEBATE else [s.id for s in session.seats]
    console.print(f"\n[bold cyan]{session_mode.value.title()}[/bold cyan]: {', '.join(model_ids)}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    failure = asyncio.run(_run_session(session, turns, seat_order))

    for turn in session.transcript:
        print_turn(turn, session)
    if failure is not None:
        console.print(f"[bold red]Stopped:[/bold red] {failure.model_id}: {failure.message}")
    if session.transcript:
        session.finish()
    print_session_summary(session)

    if not no_save and session.transcript:
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        saved = save_transcript(session, output_dir)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from src.api import create_app

    config, registry = _load(ctx)
    uvicorn.run(create_app(registry, config.prompts), host=host, port=port)


if __name__ == "__main__":
    main()
