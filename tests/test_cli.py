"""Tests for subline CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from subline import __version__
from subline.cli import app, resolve_output_path
from subline.exceptions import UnsupportedFormatError
from subline.models import (
    ModelsUsed,
    PipelineResult,
    Segment,
    SubtitleFormat,
    SubtitlePayload,
)

runner = CliRunner()

SRT = "1\n00:00:01,000 --> 00:00:02,500\nHello there\n\n2\n00:00:02,500 --> 00:00:04,000\nGeneral Kenobi\n"


def _output(result) -> str:
    return " ".join(result.output.split())


class TestResolveOutputPath:
    def test_default_is_srt_next_to_input(self, tmp_path: Path) -> None:
        path, fmt = resolve_output_path(tmp_path / "talk.mp4", None)
        assert path == tmp_path / "talk.srt"
        assert fmt == SubtitleFormat.SRT

    def test_extension_picks_format(self, tmp_path: Path) -> None:
        path, fmt = resolve_output_path(tmp_path / "talk.mp4", tmp_path / "out.VTT")
        assert path == tmp_path / "out.VTT"
        assert fmt == SubtitleFormat.VTT

    def test_no_extension_gets_srt(self, tmp_path: Path) -> None:
        path, fmt = resolve_output_path(tmp_path / "talk.mp4", tmp_path / "captions")
        assert path == tmp_path / "captions.srt"
        assert fmt == SubtitleFormat.SRT

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        with pytest.raises(UnsupportedFormatError, match=".txt, .srt, .vtt"):
            resolve_output_path(tmp_path / "talk.mp4", tmp_path / "out.docx")


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestTranscribeCommand:
    def test_missing_input(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(tmp_path / "missing.mp4")])
        assert result.exit_code == 1
        assert "File not found" in _output(result)

    def test_bad_output_extension(self, audio_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(audio_file), str(tmp_path / "out.doc")])
        assert result.exit_code == 1
        assert "Unsupported output format" in _output(result)

    def test_writes_subtitle_and_json(
        self, audio_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen = {}

        def fake_transcribe_media(media_path, desired_format, **kwargs):
            seen["format"] = desired_format
            return PipelineResult(
                text="Hello there General Kenobi",
                segments=[
                    Segment(id=0, start=1.0, end=2.5, text="Hello there"),
                    Segment(id=1, start=2.5, end=4.0, text="General Kenobi"),
                ],
                subtitle=SubtitlePayload(format=SubtitleFormat.SRT, content=SRT),
                warnings=["High-accuracy transcription failed: timeout"],
                models_used=ModelsUsed(timed="whisper-1"),
            )

        monkeypatch.setattr("subline.pipeline.transcribe_media", fake_transcribe_media)
        out = tmp_path / "out.srt"
        json_out = tmp_path / "result.json"

        result = runner.invoke(
            app, ["transcribe", str(audio_file), str(out), "--json", str(json_out)]
        )

        assert result.exit_code == 0
        assert seen["format"] == SubtitleFormat.SRT
        assert out.read_text(encoding="utf-8") == SRT
        data = json.loads(json_out.read_text(encoding="utf-8"))
        assert data["models_used"]["timed"] == "whisper-1"
        assert len(data["segments"]) == 2
        assert "Warning: High-accuracy transcription failed" in _output(result)

    def test_format_option_overrides_extension(
        self, audio_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        seen = {}

        def fake_transcribe_media(media_path, desired_format, **kwargs):
            seen["format"] = desired_format
            return PipelineResult(
                text="Hi",
                segments=[Segment(id=0, start=0.0, end=1.0, text="Hi")],
                subtitle=SubtitlePayload(format=SubtitleFormat.TXT, content="Hi"),
                models_used=ModelsUsed(timed="whisper-1"),
            )

        monkeypatch.setattr("subline.pipeline.transcribe_media", fake_transcribe_media)
        result = runner.invoke(
            app, ["transcribe", str(audio_file), str(tmp_path / "out.srt"), "-f", "txt"]
        )

        assert result.exit_code == 0
        assert seen["format"] == SubtitleFormat.TXT
        assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "Hi"


class TestRenderCommand:
    def test_render_segments_json(self, tmp_path: Path) -> None:
        segments_file = tmp_path / "edited.json"
        segments_file.write_text(
            json.dumps(
                {
                    "segments": [
                        {"id": 0, "start": 0, "end": 1.2346, "text": "Edited  line"},
                    ]
                }
            )
        )
        out = tmp_path / "edited.vtt"
        result = runner.invoke(app, ["render", str(segments_file), str(out)])

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8") == (
            "WEBVTT\n\n00:00:00.000 --> 00:00:01.235\nEdited line\n"
        )

    def test_render_list_as_txt(self, tmp_path: Path) -> None:
        segments_file = tmp_path / "edited.json"
        segments_file.write_text(
            json.dumps([{"id": 0, "start": 0, "end": 1, "text": "Just text"}])
        )
        out = tmp_path / "edited.txt"
        result = runner.invoke(app, ["render", str(segments_file), str(out)])
        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8") == "Just text"

    def test_render_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["render", str(tmp_path / "nope.json"), str(tmp_path / "out.srt")]
        )
        assert result.exit_code == 1
        assert "File not found" in _output(result)

    def test_render_without_segments(self, tmp_path: Path) -> None:
        segments_file = tmp_path / "empty.json"
        segments_file.write_text(json.dumps({"text": "words", "segments": []}))
        result = runner.invoke(app, ["render", str(segments_file), str(tmp_path / "out.srt")])
        assert result.exit_code == 1
        assert "without segment data" in _output(result)


class TestConvertCommand:
    def test_srt_to_vtt(self, tmp_path: Path) -> None:
        source = tmp_path / "clip.srt"
        source.write_text(SRT, encoding="utf-8")
        out = tmp_path / "clip.vtt"
        result = runner.invoke(app, ["convert", str(source), str(out)])

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8") == (
            "WEBVTT\n\n"
            "00:00:01.000 --> 00:00:02.500\nHello there\n\n"
            "00:00:02.500 --> 00:00:04.000\nGeneral Kenobi\n"
        )

    def test_missing_source(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["convert", str(tmp_path / "nope.srt"), str(tmp_path / "out.vtt")]
        )
        assert result.exit_code == 1


class TestCheckCommand:
    def test_all_ok(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "subline.validation.run_preflight_checks",
            lambda: [{"name": "ffmpeg", "status": "ok", "detail": "6.1"}],
        )
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0
        assert "ffmpeg" in result.output

    def test_missing_dependency(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "subline.validation.run_preflight_checks",
            lambda: [{"name": "api key", "status": "missing", "detail": "Set OPENAI_API_KEY"}],
        )
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 1


class TestInitConfigCommand:
    def test_writes_config(self, tmp_path: Path) -> None:
        path = tmp_path / "subline.yaml"
        result = runner.invoke(app, ["init-config", str(path)])
        assert result.exit_code == 0
        assert "timed_model: whisper-1" in path.read_text()

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "subline.yaml"
        path.write_text("timed_model: custom\n")
        result = runner.invoke(app, ["init-config", str(path)])
        assert result.exit_code == 1
        assert "already exists" in _output(result)
        assert path.read_text() == "timed_model: custom\n"

    def test_force(self, tmp_path: Path) -> None:
        path = tmp_path / "subline.yaml"
        path.write_text("timed_model: custom\n")
        result = runner.invoke(app, ["init-config", str(path), "--force"])
        assert result.exit_code == 0
        assert "whisper-1" in path.read_text()
