"""
Integration tests for VoiceScribe components.

These tests verify that components work together correctly and catch
common integration issues like missing methods or incompatible interfaces.
"""

import asyncio
import inspect
import io
import json
import wave
from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from voicescribe.audio.recorder import AudioRecorder, wav_duration
from voicescribe.audio.transcriber import CloudTranscriber, TranscriptionResult
from voicescribe.config import Settings
from voicescribe.main import DictationApp, _show_stage, cli, preset_tone
from voicescribe.postprocess.models import (
    PUNCTUATION,
    KeyPoints,
    Mode,
    PipelineConfiguration,
    PipelineResult,
    StageResult,
    Tone,
)
from voicescribe.postprocess.pipeline import PostProcessingPipeline
from voicescribe.storage.recordings import Recording, RecordingNotFoundError, RecordingStore
from voicescribe.ui.terminal import TerminalUI


def make_wav(seconds=1.0, rate=16000):
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(rate)
        wav_file.writeframes(b"\x00\x00" * int(seconds * rate))
    return buffer.getvalue()


def pipeline_result(original, final):
    return PipelineResult(
        original_text=original,
        final_text=final,
        stage_results={PUNCTUATION: StageResult.success(final, "Gemini")}
    )


@pytest.fixture
def settings(tmp_path):
    return Settings.from_env(environ={"VOICESCRIBE_HOME": str(tmp_path)})


@pytest.fixture
def mock_ui():
    ui = AsyncMock(spec=TerminalUI)
    ui.console = Mock()
    ui.prompt_start_recording.return_value = True
    ui.prompt_stop_recording.return_value = True
    return ui


@pytest.fixture
def mock_transcriber():
    transcriber = AsyncMock(spec=CloudTranscriber)
    transcriber.transcribe.return_value = TranscriptionResult(
        text="privet kak dela",
        provider="Groq (whisper-large-v3)"
    )
    return transcriber


@pytest.fixture
def mock_pipeline():
    pipeline = AsyncMock(spec=PostProcessingPipeline)
    pipeline.run.return_value = pipeline_result("privet kak dela", "Privet, kak dela?")
    return pipeline


class TestMethodExistence:
    """Test that all required methods exist on components."""

    def test_audio_recorder_methods(self):
        """Test that AudioRecorder has all expected methods."""
        recorder = AudioRecorder()

        assert inspect.iscoroutinefunction(recorder.start_recording)
        assert inspect.iscoroutinefunction(recorder.stop_recording)
        assert not inspect.iscoroutinefunction(recorder.is_recording)
        assert not recorder.is_recording()

    def test_transcriber_methods(self, settings):
        transcriber = CloudTranscriber(settings.transcription)

        assert inspect.iscoroutinefunction(transcriber.transcribe)
        assert inspect.iscoroutinefunction(transcriber.transcribe_file)
        assert not transcriber.is_available()

    def test_terminal_ui_methods(self):
        """Test that TerminalUI has the methods DictationApp calls."""
        ui = TerminalUI()

        for name in ('prompt_start_recording', 'show_recording_status', 'prompt_stop_recording',
                     'show_error', 'show_success'):
            assert inspect.iscoroutinefunction(getattr(ui, name))
        for name in ('show_progress', 'show_transcription', 'show_pipeline_result',
                     'show_recordings', 'show_health', 'show_key_points'):
            assert callable(getattr(ui, name))

    def test_dictation_app_methods(self, settings):
        app = DictationApp(settings=settings)

        assert inspect.iscoroutinefunction(app.run_session)
        assert inspect.iscoroutinefunction(app.reprocess)
        assert inspect.iscoroutinefunction(app.correct_text)


class TestRecorderHelpers:

    def test_recorder_validates_parameters(self):
        with pytest.raises(ValueError):
            AudioRecorder(sample_rate=0)
        with pytest.raises(ValueError):
            AudioRecorder(channels=3)

    def test_to_wav_round_trip_duration(self):
        recorder = AudioRecorder()
        wav_data = recorder._to_wav(b"\x00\x00" * 8000)
        assert wav_duration(wav_data) == pytest.approx(0.5)

    def test_duration_of_garbage(self):
        assert wav_duration(b"not a wav") == 0.0


@pytest.mark.asyncio
class TestMockedIntegration:
    """Test component integration with mocked interactive parts."""

    async def test_full_session_with_mocks(self, settings, tmp_path, mock_ui, mock_transcriber, mock_pipeline):
        """Test the complete session with mocked user interaction."""
        audio = make_wav()
        mock_recorder = AsyncMock(spec=AudioRecorder)
        mock_recorder.stop_recording.return_value = audio
        store = RecordingStore(tmp_path / "recordings.db")

        app = DictationApp(
            settings=settings,
            ui=mock_ui,
            recorder=mock_recorder,
            transcriber=mock_transcriber,
            pipeline=mock_pipeline,
            store=store,
            config=PipelineConfiguration(mode=Mode.CORRECTOR, tone=Tone.FRIENDLY)
        )

        with patch('pyperclip.copy') as mock_clipboard:
            result = await app.run_session()

        assert result.final_text == "Privet, kak dela?"
        mock_recorder.start_recording.assert_called_once()
        mock_ui.show_recording_status.assert_called_once()
        mock_ui.prompt_stop_recording.assert_called_once()
        mock_transcriber.transcribe.assert_called_once_with(audio)
        mock_pipeline.run.assert_called_once_with("privet kak dela", app.config)
        mock_ui.show_transcription.assert_called_once_with("privet kak dela", "Groq (whisper-large-v3)")
        mock_ui.show_pipeline_result.assert_called_once_with(result)

        # raw text first, corrected text second
        assert [c.args[0] for c in mock_clipboard.call_args_list] == ["privet kak dela", "Privet, kak dela?"]

        saved = await store.list()
        assert len(saved) == 1
        assert saved[0].text == "Privet, kak dela?"
        assert saved[0].mode == "corrector"
        assert saved[0].tone == "friendly"
        assert saved[0].duration == pytest.approx(1.0)
        assert saved[0].audio == audio

    async def test_cancelled_before_recording(self, settings, mock_ui):
        mock_ui.prompt_start_recording.return_value = False
        mock_recorder = AsyncMock(spec=AudioRecorder)
        app = DictationApp(settings=settings, ui=mock_ui, recorder=mock_recorder)

        assert await app.run_session() is None
        mock_recorder.start_recording.assert_not_called()

    async def test_cancelled_while_recording(self, settings, mock_ui, mock_transcriber, mock_pipeline):
        mock_ui.prompt_stop_recording.return_value = False
        mock_recorder = AsyncMock(spec=AudioRecorder)
        mock_recorder.stop_recording.return_value = make_wav()
        store = AsyncMock(spec=RecordingStore)
        app = DictationApp(
            settings=settings,
            ui=mock_ui,
            recorder=mock_recorder,
            transcriber=mock_transcriber,
            pipeline=mock_pipeline,
            store=store
        )

        with patch('pyperclip.copy') as mock_clipboard:
            assert await app.run_session() is None

        mock_recorder.stop_recording.assert_called_once()
        mock_transcriber.transcribe.assert_not_called()
        mock_pipeline.run.assert_not_called()
        store.save.assert_not_called()
        mock_clipboard.assert_not_called()

    async def test_bracketed_text_is_displayed_and_saved(self, settings, tmp_path, mock_transcriber, mock_pipeline):
        """Square brackets in dictated text are shown literally and never lose the recording."""
        text = "please close the tag [/b] now"
        mock_transcriber.transcribe.return_value = TranscriptionResult(text=text, provider="Groq")
        mock_pipeline.run.return_value = pipeline_result(text, text)
        mock_recorder = AsyncMock(spec=AudioRecorder)
        mock_recorder.stop_recording.return_value = make_wav()
        store = RecordingStore(tmp_path / "recordings.db")
        output = io.StringIO()
        ui = TerminalUI(console=Console(file=output, width=120))
        app = DictationApp(
            settings=settings,
            ui=ui,
            recorder=mock_recorder,
            transcriber=mock_transcriber,
            pipeline=mock_pipeline,
            store=store
        )

        with patch.object(ui, 'prompt_start_recording', AsyncMock(return_value=True)), \
                patch.object(ui, 'prompt_stop_recording', AsyncMock(return_value=True)), \
                patch('pyperclip.copy'):
            result = await app.run_session()

        assert result.final_text == text
        assert text in output.getvalue()
        saved = await store.list()
        assert [recording.text for recording in saved] == [text]

    async def test_save_failure_does_not_abort_session(self, settings, mock_ui, mock_transcriber, mock_pipeline):
        mock_recorder = AsyncMock(spec=AudioRecorder)
        mock_recorder.stop_recording.return_value = make_wav()
        store = AsyncMock(spec=RecordingStore)
        store.save.side_effect = OSError("disk full")

        app = DictationApp(
            settings=settings,
            ui=mock_ui,
            recorder=mock_recorder,
            transcriber=mock_transcriber,
            pipeline=mock_pipeline,
            store=store
        )

        with patch('pyperclip.copy'):
            result = await app.run_session()

        assert result.final_text == "Privet, kak dela?"
        store.save.assert_called_once()

    async def test_recorder_error_propagates(self, settings, mock_ui):
        mock_recorder = AsyncMock(spec=AudioRecorder)
        mock_recorder.start_recording.side_effect = RuntimeError("Microphone not found")
        app = DictationApp(settings=settings, ui=mock_ui, recorder=mock_recorder)

        with pytest.raises(RuntimeError, match="Microphone not found"):
            await app.run_session()

    async def test_reprocess_updates_record(self, settings, tmp_path, mock_ui, mock_transcriber, mock_pipeline):
        store = RecordingStore(tmp_path / "recordings.db")
        recording_id = await store.save(make_wav(), "old text", mode="general", provider="old")
        app = DictationApp(
            settings=settings,
            ui=mock_ui,
            transcriber=mock_transcriber,
            pipeline=mock_pipeline,
            store=store
        )

        result = await app.reprocess(recording_id, tone=Tone.SERIOUS)

        config = mock_pipeline.run.call_args.args[1]
        assert config.tone is Tone.SERIOUS
        assert result.final_text == "Privet, kak dela?"
        recording = await store.get(recording_id)
        assert recording.text == "Privet, kak dela?"
        assert recording.provider == "Groq (whisper-large-v3)"
        assert recording.tone == "serious"

    async def test_reprocess_missing_recording(self, settings, tmp_path, mock_ui):
        app = DictationApp(settings=settings, ui=mock_ui, store=RecordingStore(tmp_path / "r.db"))

        with pytest.raises(RecordingNotFoundError):
            await app.reprocess(7)

    async def test_health_without_keys(self, settings, mock_ui):
        app = DictationApp(settings=settings, ui=mock_ui)

        statuses = await app.check_health()

        assert set(statuses) == {"Gemini", "Groq", "DeepSeek"}
        assert all(status.status == "auth" for status in statuses.values())


class TestBracketedUserText:
    """User text containing square brackets is printed literally."""

    TEXT = "please close the tag [/b] now"

    @pytest.fixture
    def output(self):
        return io.StringIO()

    @pytest.fixture
    def ui(self, output):
        return TerminalUI(console=Console(file=output, width=120))

    @pytest.mark.asyncio
    async def test_show_success_short_message(self, ui, output):
        await ui.show_success(self.TEXT)
        assert self.TEXT in output.getvalue()

    @pytest.mark.asyncio
    async def test_show_success_long_message(self, ui, output):
        await ui.show_success("[bold]" + "x" * 120)
        assert "[bold]" in output.getvalue()

    def test_show_stage_success(self, ui, output):
        _show_stage(ui, StageResult.success(self.TEXT, "Gemini [format]"))
        assert self.TEXT in output.getvalue()
        assert "Gemini [format]" in output.getvalue()

    def test_show_stage_failure(self, ui, output):
        _show_stage(ui, StageResult.failure("text", "quota exceeded [rate_limited]"))
        assert "quota exceeded [rate_limited]" in output.getvalue()

    def test_show_key_points(self, ui, output):
        ui.show_key_points(KeyPoints(summary=self.TEXT, action_items=["fix [/i] markup"]))
        assert self.TEXT in output.getvalue()
        assert "fix [/i] markup" in output.getvalue()

    def test_show_pipeline_result(self, ui, output):
        result = PipelineResult(
            original_text=self.TEXT,
            final_text=self.TEXT,
            succeeded=False,
            stage_results={PUNCTUATION: StageResult.failure(self.TEXT, "bad [/x]")},
            error_message="boom [/y]"
        )

        ui.show_pipeline_result(result)

        assert "bad [/x]" in output.getvalue()
        assert "boom [/y]" in output.getvalue()

    def test_show_recordings(self, ui, output):
        recording = Recording(id=1, timestamp=0, mode="general", provider="Groq", text="a [/b] c", audio=b"")
        ui.show_recordings([recording])
        assert "a [/b] c" in output.getvalue()


def test_preset_tone():
    assert preset_tone("friendly") is Tone.FRIENDLY
    assert preset_tone(None) is Tone.DEFAULT
    assert preset_tone("sarcastic") is Tone.DEFAULT


class TestCommandLine:
    """Drive the click CLI with CliRunner."""

    @pytest.fixture
    def output(self):
        return io.StringIO()

    @pytest.fixture
    def ui(self, output):
        return TerminalUI(console=Console(file=output, width=120))

    def invoke(self, tmp_path, args, obj=None):
        runner = CliRunner()
        return runner.invoke(cli, args, obj=obj, env={"VOICESCRIBE_HOME": str(tmp_path)})

    def test_correct_command(self, tmp_path, settings, ui, output, mock_pipeline):
        app = DictationApp(settings=settings, ui=ui, pipeline=mock_pipeline)

        with patch('pyperclip.copy') as mock_clipboard:
            result = self.invoke(tmp_path, ["--mode", "corrector", "correct", "privet kak dela"],
                                 obj={"ui": ui, "app": app})

        assert result.exit_code == 0, result.output
        assert "Privet, kak dela?" in output.getvalue()
        mock_clipboard.assert_called_once_with("Privet, kak dela?")

    def test_global_options_build_configuration(self, tmp_path, ui):
        obj = {"ui": ui}
        with patch('voicescribe.main._app') as app_factory:
            app_factory.return_value.store.list = AsyncMock(return_value=[])
            result = self.invoke(
                tmp_path,
                ["--mode", "coder", "--tone", "serious", "--grammar", "--no-spelling", "history", "list"],
                obj=obj
            )

        assert result.exit_code == 0, result.output
        config = obj["config"]
        assert config.mode is Mode.CODER
        assert config.tone is Tone.SERIOUS
        assert config.enable_grammar
        assert not config.enable_spelling
        assert config.enable_punctuation

    def test_command_error_is_reported(self, tmp_path, settings, ui, output, mock_pipeline):
        mock_pipeline.run.side_effect = RuntimeError("boom")
        app = DictationApp(settings=settings, ui=ui, pipeline=mock_pipeline)

        result = self.invoke(tmp_path, ["correct", "text"], obj={"ui": ui, "app": app})

        assert result.exit_code == 1
        assert "boom" in output.getvalue()

    def test_history_list_and_delete(self, tmp_path, settings, ui, output):
        store = RecordingStore(tmp_path / "recordings.db")
        app = DictationApp(settings=settings, ui=ui, store=store)
        obj = {"ui": ui, "app": app}

        recording_id = asyncio.run(store.save(make_wav(), "Saved dictation", mode="general", provider="Groq"))

        result = self.invoke(tmp_path, ["history", "list"], obj=obj)
        assert result.exit_code == 0, result.output
        assert "Saved dictation" in output.getvalue()

        result = self.invoke(tmp_path, ["history", "delete", str(recording_id), "--yes"], obj=obj)
        assert result.exit_code == 0, result.output
        assert asyncio.run(store.list()) == []

    def test_history_play_missing(self, tmp_path, settings, ui):
        app = DictationApp(settings=settings, ui=ui, store=RecordingStore(tmp_path / "recordings.db"))

        result = self.invoke(tmp_path, ["history", "play", "3"], obj={"ui": ui, "app": app})

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_health_command(self, tmp_path, settings, ui, output):
        app = DictationApp(settings=settings, ui=ui)

        result = self.invoke(tmp_path, ["health"], obj={"ui": ui, "app": app})

        assert result.exit_code == 0, result.output
        assert "auth" in output.getvalue()

    def test_set_key(self, tmp_path):
        result = self.invoke(tmp_path, ["set-key", "GEMINI_API_KEY", "abc"])

        assert result.exit_code == 0, result.output
        stored = json.loads((tmp_path / "overrides.json").read_text())
        assert stored == {"GEMINI_API_KEY": "abc"}

    def test_set_key_rejects_unknown_name(self, tmp_path):
        result = self.invoke(tmp_path, ["set-key", "SHELL", "x"])

        assert result.exit_code != 0
