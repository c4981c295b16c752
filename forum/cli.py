"""Click CLI — loads config, builds clients, runs the forum and exports the transcript."""

import asyncio
import logging
import random
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, ForumSettings, load_config, parse_identity
from forum.errors import UnknownIdentityError, ValidationError
from forum.healthcheck import live_identities, run_health_checks
from forum.models import ChatSnapshot, Identity, ResolutionMode
from forum.offline import OfflineResponder
from forum.output import print_message, save_transcript
from forum.providers.anthropic import AnthropicClient
from forum.providers.base import GenerationClient
from forum.providers.gemini import GeminiClient
from forum.providers.openai_provider import OpenAIChatClient
from forum.resolver import ResponseResolver
from forum.scheduler import TurnScheduler
from forum.topics import parse_topic_file

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

CLIENT_CLASSES: dict[str, type[GenerationClient]] = {
    "google-genai": GeminiClient,
    "openai": OpenAIChatClient,
    "anthropic": AnthropicClient,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_clients(config: AppConfig) -> dict[Identity, GenerationClient]:
    """Build one generation client per configured identity."""
    clients: dict[Identity, GenerationClient] = {}
    for identity, model_cfg in config.models.items():
        if model_cfg.sdk not in CLIENT_CLASSES:
            raise click.BadParameter(f"Unknown sdk '{model_cfg.sdk}' for {identity.value}")
        clients[identity] = CLIENT_CLASSES[model_cfg.sdk](model_cfg)
    return clients


def parse_mode_overrides(values: tuple[str, ...] | list[str] | dict) -> dict[Identity, ResolutionMode]:
    """Parse ``NAME=MODE`` pairs (or a front matter mapping) into a mode table."""
    pairs = values.items() if isinstance(values, dict) else (v.split("=", 1) for v in values)
    overrides: dict[Identity, ResolutionMode] = {}
    for pair in pairs:
        if len(pair) != 2:
            raise click.BadParameter(f"Expected NAME=MODE, got '{'='.join(pair)}'")
        name, mode = pair
        try:
            overrides[parse_identity(str(name).strip())] = ResolutionMode(str(mode).strip())
        except (UnknownIdentityError, ValueError) as exc:
            raise click.BadParameter(str(exc)) from exc
    return overrides


def _check_and_fallback(
    config: AppConfig,
    clients: dict[Identity, GenerationClient],
    settings: ForumSettings,
) -> None:
    """Ping live backends and offer to switch failing identities to offline mode."""
    primary = config.defaults.primary
    targets = live_identities(settings, config.defaults.rotation, primary)
    if not targets:
        return

    console.print("\n[bold]Checking backends...[/bold]")
    results = asyncio.run(run_health_checks(clients, settings.credentials, targets))

    failed: list[Identity] = []
    for identity in targets:
        ok, err = results[identity]
        if ok:
            console.print(f"  [green]OK  [/green] {identity.value}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {identity.value}: {short_err}")
            failed.append(identity)

    if not failed:
        console.print()
        return

    fallback = [i for i in failed if i != primary]
    if primary in failed:
        fallback += [
            i for i in config.defaults.rotation
            if i != primary and settings.mode_for(i) == ResolutionMode.PROXIED and i not in fallback
        ]
    if not fallback:
        console.print(f"[yellow]{primary.value} turns will be recorded as errors.[/yellow]\n")
        return

    names = ", ".join(i.value for i in fallback)
    if not click.confirm(f"Switch {names} to offline mode?", default=True):
        console.print()
        return
    for identity in fallback:
        settings.modes[identity] = ResolutionMode.OFFLINE
    console.print()


async def _run_chat(scheduler: TurnScheduler, topic: str, turns: int) -> ChatSnapshot:
    """Run the forum until ``turns`` AI messages have been appended (0 = until interrupted)."""
    done = asyncio.Event()
    printed = 0

    def on_change(snapshot: ChatSnapshot) -> None:
        nonlocal printed
        for message in snapshot.messages[printed:]:
            print_message(message)
        printed = len(snapshot.messages)
        if not snapshot.is_running or (turns and printed - 1 >= turns):
            done.set()

    unsubscribe = scheduler.store.subscribe(on_change)
    try:
        scheduler.start(topic)
        await done.wait()
    finally:
        unsubscribe()
        await scheduler.shutdown()
    return scheduler.snapshot()


@click.command()
@click.argument("topic", required=False)
@click.option("--file", "topic_file", type=click.Path(exists=True, path_type=Path), help="Read topic from .md file")
@click.option("--turns", default=None, type=int, help="AI turns before stopping, 0 = until Ctrl+C")
@click.option("--mode", "modes", multiple=True, metavar="NAME=MODE",
              help="Resolution mode override, e.g. Grok=direct (offline|proxied|direct)")
@click.option("--delay", default=None, type=float, help="Seconds between turns (default: from config)")
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--no-export", is_flag=True, default=False, help="Do not save a transcript")
@click.option("--seed", default=None, type=int, help="Seed for offline response selection")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    topic: str | None,
    topic_file: Path | None,
    turns: int | None,
    modes: tuple[str, ...],
    delay: float | None,
    output_path: str | None,
    no_export: bool,
    seed: int | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """AI Forum -- round-robin collaborative chat between AI backends.

    \b
    Examples:
      ai-forum "How should a small team adopt event sourcing?" --turns 5
      ai-forum "Design a rate limiter" --mode Grok=proxied --mode OpenAI=direct
      ai-forum --file topic.md --turns 0
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, UnknownIdentityError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    meta: dict = {}
    if topic_file:
        topic_text, meta = parse_topic_file(topic_file)
    elif topic:
        topic_text = topic
    else:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument or --file.")
        sys.exit(1)

    # CLI flags win; front matter only fills in when a flag is not set
    settings = config.settings
    settings.modes.update(parse_mode_overrides(meta.get("modes") or {}))
    settings.modes.update(parse_mode_overrides(modes))
    settings.modes.pop(config.defaults.primary, None)
    effective_turns = (
        turns if turns is not None
        else int(meta["turns"]) if "turns" in meta
        else config.defaults.turns
    )
    if delay is not None:
        settings.tuning.response_delay_sec = delay
    elif "delay" in meta:
        settings.tuning.response_delay_sec = float(meta["delay"])
    output_dir = Path(output_path) if output_path else config.defaults.output_dir

    clients = build_clients(config)
    offline = OfflineResponder(delay_range=config.defaults.offline_delay_sec, rng=random.Random(seed))
    try:
        resolver = ResponseResolver(
            clients,
            config.defaults.primary,
            offline=offline,
            timeout_sec=config.defaults.timeout_sec,
            proxy_template=config.prompts.proxy,
            personas=config.personas,
        )
        scheduler = TurnScheduler(resolver, settings, config.defaults.rotation)
    except UnknownIdentityError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if not skip_health_check:
        _check_and_fallback(config, clients, settings)

    rotation = " -> ".join(i.value for i in config.defaults.rotation)
    console.print(f"\n[bold cyan]AI Forum[/bold cyan] — {rotation}")
    console.print(f"Turns: {effective_turns or 'until interrupted'}\n")

    try:
        snapshot = asyncio.run(_run_chat(scheduler, topic_text, effective_turns))
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
        snapshot = scheduler.snapshot()

    if snapshot.last_error:
        console.print(f"[yellow]Last error:[/yellow] {snapshot.last_error}")

    if not no_export:
        saved = save_transcript(snapshot, settings.master_prompt, output_dir)
        if saved:
            console.print(f"\n[dim]Saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
