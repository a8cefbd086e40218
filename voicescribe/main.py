"""
Main application entry point for VoiceScribe.

This module provides the command-line interface and orchestrates audio
recording, transcription, the correction pipeline and the recording history.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

import click
import pyperclip
from rich.text import Text

from . import __version__
from .audio.recorder import AudioRecorder, play_wav, wav_duration
from .audio.transcriber import CloudTranscriber, TranscriptionResult
from .config import OVERRIDE_KEYS, LocalOverrides, Settings, home_dir, load_settings
from .logging_setup import setup_logging
from .postprocess import extras
from .postprocess.models import Mode, PipelineConfiguration, PipelineResult, StageResult, Tone
from .postprocess.pipeline import PostProcessingPipeline
from .postprocess.providers import HealthStatus
from .storage.recordings import RecordingNotFoundError, RecordingStore
from .ui.terminal import TerminalUI

logger = logging.getLogger(__name__)


def preset_tone(value: Optional[str]) -> Tone:
    """Tone from a stored preset; unknown presets fall back to the default tone."""
    try:
        return Tone(value or Tone.DEFAULT.value)
    except ValueError:
        logger.warning(f"Unknown tone preset '{value}', using default")
        return Tone.DEFAULT


class DictationApp:
    """
    Main application class that coordinates all components.

    Handles the complete flow from audio recording through transcription,
    correction, clipboard copy and saving to the recording history.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ui: Optional[TerminalUI] = None,
        recorder: Optional[AudioRecorder] = None,
        transcriber: Optional[CloudTranscriber] = None,
        pipeline: Optional[PostProcessingPipeline] = None,
        store: Optional[RecordingStore] = None,
        config: Optional[PipelineConfiguration] = None
    ):
        self.settings = settings or load_settings()
        self.ui = ui or TerminalUI()
        self.recorder = recorder or AudioRecorder()
        self.transcriber = transcriber or CloudTranscriber(self.settings.transcription)
        self.pipeline = pipeline or PostProcessingPipeline.from_settings(self.settings)
        self.store = store or RecordingStore(self.settings.db_path)
        self.config = config or PipelineConfiguration(tone=preset_tone(self.settings.tone))

    async def run_session(self) -> Optional[PipelineResult]:
        """
        Run a complete dictation session.

        Returns:
            The pipeline result, or None if the session was cancelled.
        """
        if not await self.ui.prompt_start_recording():
            return None

        await self.recorder.start_recording()
        await self.ui.show_recording_status()
        if not await self.ui.prompt_stop_recording():
            # Release the input device before giving up on the session
            await self.recorder.stop_recording()
            self.ui.console.print("[yellow]Recording cancelled.[/yellow]")
            return None
        audio_data = await self.recorder.stop_recording()

        with self.ui.show_progress("Transcribing..."):
            transcription = await self.transcriber.transcribe(audio_data)
        self.ui.show_transcription(transcription.text, transcription.provider)
        if not transcription.text:
            self.ui.console.print("[yellow]No speech detected in recording.[/yellow]")
            return None

        # The raw text is available right away even if correction is slow
        self._copy_to_clipboard(transcription.text)

        with self.ui.show_progress("Correcting text..."):
            result = await self.pipeline.run(transcription.text, self.config)
        self.ui.show_pipeline_result(result)
        self._copy_to_clipboard(result.final_text)

        try:
            await self.store.save(
                audio_data,
                result.final_text,
                mode=self.config.mode.value,
                provider=transcription.provider,
                tone=self.config.tone.value,
                duration=wav_duration(audio_data)
            )
        except Exception as e:
            logger.error(f"Could not save recording: {e}")

        await self.ui.show_success(result.final_text)

        return result

    async def reprocess(self, recording_id: int, tone: Optional[Tone] = None) -> PipelineResult:
        """
        Transcribe a stored recording again and correct the new transcript.

        Raises:
            RecordingNotFoundError: If no recording has this id.
        """
        recording = await self.store.get(recording_id)
        if recording is None:
            raise RecordingNotFoundError(f"Recording with id {recording_id} not found")

        config = self.config
        if tone is not None:
            config = PipelineConfiguration(
                mode=config.mode,
                tone=tone,
                enable_spelling=config.enable_spelling,
                enable_grammar=config.enable_grammar,
                enable_punctuation=config.enable_punctuation,
                languages=config.languages
            )

        with self.ui.show_progress(f"Re-transcribing recording {recording_id}..."):
            transcription = await self.transcriber.transcribe(recording.audio)
        with self.ui.show_progress("Correcting text..."):
            result = await self.pipeline.run(transcription.text, config)

        await self.store.update(
            recording_id,
            text=result.final_text,
            provider=transcription.provider,
            mode=config.mode.value,
            tone=config.tone.value
        )
        return result

    async def correct_text(self, text: str) -> PipelineResult:
        return await self.pipeline.run(text, self.config)

    async def transcribe_file(self, path: Path) -> TranscriptionResult:
        with self.ui.show_progress(f"Transcribing {path.name}..."):
            return await self.transcriber.transcribe_file(path)

    async def check_health(self) -> Dict[str, HealthStatus]:
        """Probe every post-processing provider."""
        pipeline = self.pipeline
        return {
            "Gemini": await pipeline.generative.check_health(),
            "Groq": await pipeline.chat.check_health(pipeline.fast_endpoint),
            "DeepSeek": await pipeline.chat.check_health(pipeline.alternate_endpoint),
        }

    def _copy_to_clipboard(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            self.ui.console.print(Text(f"⚠️  Could not copy to clipboard: {e}", style="yellow"))


def _run(ctx: click.Context, coro) -> object:
    """Run a coroutine, reporting failures through the terminal UI."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user.")
        ctx.exit(0)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        ui: TerminalUI = ctx.obj["ui"]
        asyncio.run(ui.show_error(e))
        ctx.exit(1)


def _app(ctx: click.Context) -> DictationApp:
    if "app" not in ctx.obj:
        ctx.obj["app"] = DictationApp(ui=ctx.obj["ui"], config=ctx.obj["config"])
    return ctx.obj["app"]


def _show_stage(ui: TerminalUI, result: StageResult) -> None:
    if result.succeeded:
        ui.console.print(Text(result.text or ""))
        ui.console.print(Text(result.provider_label or "", style="dim"))
    else:
        ui.console.print(Text(f"❌ {result.error_message}", style="red"))


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--mode',
    default=Mode.GENERAL.value,
    help='Dictation mode',
    type=click.Choice([m.value for m in Mode])
)
@click.option(
    '--tone',
    default=None,
    help='Style directive outside of general mode (default: TONE_PRESET)',
    type=click.Choice([t.value for t in Tone])
)
@click.option('--spelling/--no-spelling', default=True, help='Run the spelling stage')
@click.option('--grammar/--no-grammar', default=False, help='Run the grammar stage')
@click.option('--punctuation/--no-punctuation', default=True, help='Run the punctuation stage')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.pass_context
def cli(
    ctx: click.Context,
    mode: str,
    tone: Optional[str],
    spelling: bool,
    grammar: bool,
    punctuation: bool,
    verbose: bool
) -> None:
    """
    VoiceScribe - dictation with spelling, grammar and punctuation correction.

    Records audio, transcribes it with a hosted Whisper model and corrects
    the text, falling back across providers when one is unavailable.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("ui", TerminalUI())
    ctx.obj["config"] = PipelineConfiguration(
        mode=mode,
        tone=tone or preset_tone(load_settings().tone),
        enable_spelling=spelling,
        enable_grammar=grammar,
        enable_punctuation=punctuation
    )


@cli.command()
@click.pass_context
def record(ctx: click.Context) -> None:
    """Record, transcribe and correct one dictation."""
    app = _app(ctx)
    _run(ctx, app.run_session())


@cli.command()
@click.argument('text')
@click.pass_context
def correct(ctx: click.Context, text: str) -> None:
    """Run the correction pipeline on TEXT."""
    app = _app(ctx)
    result = _run(ctx, app.correct_text(text))
    app.ui.show_pipeline_result(result)
    app._copy_to_clipboard(result.final_text)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def transcribe(ctx: click.Context, file: Path) -> None:
    """Transcribe an audio FILE without correcting it."""
    app = _app(ctx)
    result = _run(ctx, app.transcribe_file(file))
    app.ui.show_transcription(result.text, result.provider)


@cli.command('format')
@click.argument('text')
@click.pass_context
def format_command(ctx: click.Context, text: str) -> None:
    """Format TEXT into Markdown paragraphs and headings."""
    app = _app(ctx)
    _show_stage(app.ui, _run(ctx, extras.format_text(app.pipeline.generative, text)))


@cli.command()
@click.argument('text')
@click.pass_context
def style(ctx: click.Context, text: str) -> None:
    """Improve the style of TEXT."""
    app = _app(ctx)
    _show_stage(app.ui, _run(ctx, extras.improve_style(app.pipeline.generative, text)))


@cli.command()
@click.argument('text')
@click.option('--to', 'target', default='en', help='Target language code')
@click.pass_context
def translate(ctx: click.Context, text: str, target: str) -> None:
    """Translate TEXT into another language."""
    app = _app(ctx)
    _show_stage(app.ui, _run(ctx, extras.translate_text(app.pipeline.generative, text, target)))


@cli.command('key-points')
@click.argument('text')
@click.pass_context
def key_points(ctx: click.Context, text: str) -> None:
    """Extract a summary, action items, dates and topics from TEXT."""
    app = _app(ctx)
    result = _run(ctx, extras.extract_key_points(app.pipeline.generative, text))
    if result.succeeded:
        app.ui.show_key_points(result.key_points)
    else:
        app.ui.console.print(Text(f"❌ {result.error_message}", style="red"))


@cli.group()
def history() -> None:
    """Browse and manage saved recordings."""


@history.command('list')
@click.pass_context
def history_list(ctx: click.Context) -> None:
    """List saved recordings, newest first."""
    app = _app(ctx)
    app.ui.show_recordings(_run(ctx, app.store.list()))


@history.command('play')
@click.argument('recording_id', type=int)
@click.pass_context
def history_play(ctx: click.Context, recording_id: int) -> None:
    """Replay a recording."""
    app = _app(ctx)
    audio = _run(ctx, app.store.get_audio(recording_id))
    if audio is None:
        raise click.ClickException(f"Recording {recording_id} not found")
    _run(ctx, play_wav(audio))


@history.command('reprocess')
@click.argument('recording_id', type=int)
@click.option('--tone', default=None, type=click.Choice([t.value for t in Tone]))
@click.pass_context
def history_reprocess(ctx: click.Context, recording_id: int, tone: Optional[str]) -> None:
    """Transcribe a recording again and re-run correction."""
    app = _app(ctx)
    result = _run(ctx, app.reprocess(recording_id, Tone(tone) if tone else None))
    app.ui.show_pipeline_result(result)


@history.command('delete')
@click.argument('recording_id', type=int)
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def history_delete(ctx: click.Context, recording_id: int, yes: bool) -> None:
    """Delete a recording."""
    app = _app(ctx)
    if yes or app.ui.confirm(f"Delete recording {recording_id}?"):
        _run(ctx, app.store.delete(recording_id))
        click.echo(f"Deleted recording {recording_id}")


@history.command('clear')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def history_clear(ctx: click.Context, yes: bool) -> None:
    """Delete every recording."""
    app = _app(ctx)
    if yes or app.ui.confirm("Delete ALL recordings?"):
        _run(ctx, app.store.clear_all())
        click.echo("All recordings deleted")


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check that the correction providers are reachable."""
    app = _app(ctx)
    app.ui.show_health(_run(ctx, app.check_health()))


@cli.command('set-key')
@click.argument('name', type=click.Choice(OVERRIDE_KEYS))
@click.argument('value')
def set_key(name: str, value: str) -> None:
    """Store an API key or preference locally (overrides the environment)."""
    path = home_dir() / "overrides.json"
    LocalOverrides.load(path).set(name, value)
    click.echo(f"Saved {name} to {path}")


def main() -> None:
    try:
        cli(obj={})
    except KeyboardInterrupt:
        click.echo("\nApplication interrupted by user.")
        sys.exit(0)


if __name__ == "__main__":
    main()
