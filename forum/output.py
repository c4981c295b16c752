"""Plain-text transcript export and Rich console rendering of forum messages."""

import logging
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from forum.models import ChatSnapshot, Identity, Message

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_RULE = "=" * 40

_BORDER_STYLES: dict[Identity, str] = {
    Identity.USER: "white",
    Identity.GROK: "bright_black",
    Identity.GEMINI: "blue",
    Identity.OPENAI: "green",
    Identity.DEEPSEEK: "cyan",
    Identity.ZAI: "magenta",
}


def format_transcript(snapshot: ChatSnapshot, master_prompt: str) -> str:
    """Serialize topic, master prompt and every message in log order.

    Pure function of its inputs: the same snapshot always yields the same text.
    """
    header = f"AI Collab Chat\nTopic: {snapshot.topic}\nMaster Prompt: {master_prompt}\n\n{_RULE}\n\n"
    body = "\n\n".join(f"[{m.author.value}]:\n{m.content}" for m in snapshot.messages)
    return header + body


def transcript_filename(day: date | None = None) -> str:
    day = day or date.today()
    return f"ai-collab-chat-{day.isoformat()}.txt"


def save_transcript(snapshot: ChatSnapshot, master_prompt: str, output_dir: Path) -> Path | None:
    """Write the transcript to ``output_dir``. Returns None for an empty chat."""
    if not snapshot.messages:
        logger.info("Nothing to export: chat is empty")
        return None

    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / transcript_filename()
    filepath.write_text(format_transcript(snapshot, master_prompt), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath


def print_message(message: Message) -> None:
    """Print one forum message as a titled panel."""
    if message.is_error:
        body = Text(message.content, style="red")
        border = "red"
    else:
        body = Markdown(message.content)
        border = _BORDER_STYLES.get(message.author, "dim")
    console.print(Panel(body, title=f"[bold]{message.author.value}[/bold]", title_align="left", border_style=border))
