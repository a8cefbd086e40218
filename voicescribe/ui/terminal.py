"""
Rich-based terminal user interface.

Shows recording prompts, transcription progress, per-stage correction
results and the recording history.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional
import asyncio
import time

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text
from rich import box

from ..postprocess.models import STAGE_ORDER, KeyPoints, PipelineResult
from ..postprocess.providers import HealthStatus
from ..storage.recordings import Recording

_HEALTH_STYLES = {
    "ok": "green",
    "auth": "yellow",
    "rate_limit": "yellow",
    "degraded": "orange3",
    "unreachable": "red",
}


class TerminalUI:
    """Rich terminal interface for the dictation application."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._recording_start_time: Optional[float] = None

    async def prompt_start_recording(self) -> bool:
        """
        Prompt user to start recording.

        Returns:
            True if user wants to start recording, False otherwise.
        """
        welcome_text = Text()
        welcome_text.append("🎙️  VoiceScribe", style="bold magenta")
        welcome_text.append("\n\nDictation with spelling, grammar and punctuation correction\n")
        self.console.print(Panel(welcome_text, title="Welcome", border_style="cyan", padding=(1, 2)))

        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(
                None,
                lambda: input("Press Enter to start recording (or Ctrl+C to quit): ")
            )
            return True
        except (KeyboardInterrupt, EOFError):
            return False

    async def show_recording_status(self) -> None:
        self._recording_start_time = time.time()
        panel = Panel(
            Text("🔴 RECORDING", style="bold red") + Text("\n\nSpeak now... Press Enter to stop", style="white"),
            title="Recording Audio",
            border_style="red",
            padding=(1, 2)
        )
        self.console.print(panel)

    async def prompt_stop_recording(self) -> bool:
        """
        Wait for user to stop recording.

        Returns:
            True when user presses Enter to stop.
        """
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, input)
        except (KeyboardInterrupt, EOFError):
            return False

        if self._recording_start_time:
            self.console.print(f"⏹️  Recording stopped ({self.elapsed_recording_time():.1f}s)")
        else:
            self.console.print("⏹️  Recording stopped")
        return True

    def elapsed_recording_time(self) -> float:
        if not self._recording_start_time:
            return 0.0
        return time.time() - self._recording_start_time

    @contextmanager
    def show_progress(self, message: str) -> Iterator[None]:
        """Show a spinner while the wrapped block runs."""
        with self.console.status(f"🤖 {message}", spinner="dots"):
            yield

    def show_transcription(self, text: str, provider: Optional[str] = None) -> None:
        title = f"Raw transcription ({provider})" if provider else "Raw transcription"
        self.console.print(Panel(Text(text) if text else "[dim](empty)[/dim]", title=title, border_style="blue"))

    def show_pipeline_result(self, result: PipelineResult) -> None:
        """Display each stage's outcome and the final text."""
        table = Table(
            title="Post-processing",
            title_style="bold cyan",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold white"
        )
        table.add_column("Stage", style="cyan")
        table.add_column("Status", width=8)
        table.add_column("Provider", style="magenta")
        table.add_column("Details", style="white")

        for stage in STAGE_ORDER:
            stage_result = result.stage_results.get(stage)
            if stage_result is None:
                table.add_row(stage, "[dim]off[/dim]", "", "")
            elif stage_result.succeeded:
                table.add_row(stage, "[green]ok[/green]", Text(stage_result.provider_label or "-"), "")
            else:
                table.add_row(stage, "[red]failed[/red]", "-", Text(stage_result.error_message or ""))

        self.console.print(table)
        border = "green" if result.succeeded else "red"
        self.console.print(Panel(Text(result.final_text), title="Result", border_style=border))
        if result.error_message:
            self.console.print(Text(f"Pipeline error: {result.error_message}", style="red"))

    def show_recordings(self, recordings: List[Recording]) -> None:
        if not recordings:
            self.console.print("[dim]No recordings yet.[/dim]")
            return

        table = Table(title="Recordings", box=box.ROUNDED, header_style="bold white")
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Date", style="yellow")
        table.add_column("Length", justify="right")
        table.add_column("Mode")
        table.add_column("Provider", style="magenta")
        table.add_column("Text", style="white", max_width=60)

        for recording in recordings:
            date = datetime.fromtimestamp(recording.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
            length = f"{recording.duration:.0f}s" if recording.duration else "-"
            mode = recording.mode if not recording.tone else f"{recording.mode}/{recording.tone}"
            preview = recording.text if len(recording.text) <= 80 else recording.text[:80] + "..."
            table.add_row(str(recording.id), date, length, mode, Text(recording.provider), Text(preview))

        self.console.print(table)

    def show_key_points(self, points: KeyPoints) -> None:
        self.console.print(Panel(Text(points.summary) if points.summary else "[dim](no summary)[/dim]", title="Summary", border_style="cyan"))
        for title, items in (
            ("Action items", points.action_items),
            ("Dates", points.dates),
            ("Key topics", points.key_topics),
        ):
            if items:
                self.console.print(f"[bold]{title}[/bold]")
                for item in items:
                    self.console.print(Text(f"  • {item}"))

    def show_health(self, statuses: Dict[str, HealthStatus]) -> None:
        table = Table(title="Provider health", box=box.ROUNDED, header_style="bold white")
        table.add_column("Provider", style="cyan")
        table.add_column("Status")
        table.add_column("Detail", style="dim")
        for name, status in statuses.items():
            style = _HEALTH_STYLES.get(status.status, "white")
            detail = status.detail or (str(status.code) if status.code else "")
            table.add_row(name, Text(status.status, style=style), Text(detail))
        self.console.print(table)

    def confirm(self, question: str) -> bool:
        return Confirm.ask(question, console=self.console, default=False)

    async def show_error(self, error: Exception) -> None:
        """
        Display error message with Rich formatting.

        Args:
            error: Exception to display
        """
        error_message = str(error)
        lowered = error_message.lower()

        if "permission" in lowered or "microphone" in lowered:
            guidance = "\n\n💡 Check the microphone permissions of your terminal."
        elif "api key" in lowered or "unauthorized" in lowered:
            guidance = "\n\n💡 Check your API keys (see `voicescribe set-key`)."
        elif "network" in lowered or "timeout" in lowered:
            guidance = "\n\n💡 Check your internet connection and try again."
        else:
            guidance = ""

        self.console.print(Panel(
            Text(f"❌ {error_message}{guidance}", style="red"),
            title="Error",
            border_style="red",
            padding=(1, 2)
        ))

    async def show_success(self, message: str) -> None:
        if len(message) > 100:
            content = Text("📋 Copied to clipboard!\n\n") + Text(f"{message[:100]}...", style="dim")
        else:
            content = Text(f"✅ {message}")
        self.console.print(Panel(content, title="Success", border_style="green", padding=(1, 2)))
