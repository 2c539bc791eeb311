"""Tests for collaborator adapters and their response schemas (mocked SDKs)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from src.transcription.diarizer import AssemblyAIDiarizer, DiarizationError, speaker_label
from src.transcription.schemas import MalformedResponseError, parse_transcription, strip_code_fences
from src.transcription.transcriber import GeminiTranscriber, TranscriptionError, build_chunk_prompt

VALID_PAYLOAD = {
    "transcript": [
        {"speaker": "Speaker 1", "text": "Hello.", "start_ms": 0, "end_ms": 1200, "notes": ""},
        {"speaker": "Speaker 2", "text": "  ", "start_ms": 1200, "end_ms": 1500, "notes": ""},
        {"speaker": "Speaker 2", "text": "Hi there.", "start_ms": 1500, "end_ms": 2500, "notes": "[laughter]"},
    ],
    "summary": " Two people greet each other. ",
    "action": ["Send the deck", ""],
}

# ---------------------------------------------------------------------------
# Schema tests
# ---------------------------------------------------------------------------


class TestParseTranscription:
    def test_valid_payload(self) -> None:
        result = parse_transcription(json.dumps(VALID_PAYLOAD))

        assert [ln.text for ln in result.lines] == ["Hello.", "Hi there."]
        assert result.lines[1].speaker == "Speaker 2"
        assert result.lines[1].notes == "[laughter]"
        assert result.lines[0].end_ms == 1200
        assert result.summary == "Two people greet each other."
        assert result.actions == ["Send the deck"]

    def test_code_fenced_payload(self) -> None:
        raw = "```json\n" + json.dumps(VALID_PAYLOAD) + "\n```"
        assert len(parse_transcription(raw).lines) == 2

    def test_optional_fields_default(self) -> None:
        result = parse_transcription(json.dumps({"transcript": [{"text": "Only text"}]}))
        assert result.lines[0].speaker == ""
        assert result.lines[0].start_ms == 0
        assert result.summary == ""
        assert result.actions == []

    def test_end_before_start_is_clamped(self) -> None:
        payload = {"transcript": [{"speaker": "S", "text": "t", "start_ms": 500, "end_ms": 100}]}
        line = parse_transcription(json.dumps(payload)).lines[0]
        assert line.end_ms == 500

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            json.dumps({"summary": "missing transcript"}),
            json.dumps({"transcript": "not a list"}),
            json.dumps({"transcript": [{"speaker": "S", "text": "t", "start_ms": -5}]}),
        ],
    )
    def test_malformed(self, raw: str) -> None:
        with pytest.raises(MalformedResponseError):
            parse_transcription(raw)

    def test_strip_code_fences_leaves_plain_json(self) -> None:
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


# ---------------------------------------------------------------------------
# Gemini transcriber tests
# ---------------------------------------------------------------------------


class TestBuildChunkPrompt:
    def test_no_known_speakers(self) -> None:
        prompt = build_chunk_prompt([], "")
        assert 'Start labeling with "Speaker 1"' in prompt
        assert "No previous summary." in prompt

    def test_known_speakers_and_prior_summary(self) -> None:
        prompt = build_chunk_prompt(["Speaker 1", "Speaker 2"], "Alice proposed X.")
        assert "Known speakers so far" in prompt
        assert "Speaker 1, Speaker 2" in prompt
        assert '"Speaker 3"' in prompt
        assert "Previous summary:\nAlice proposed X." in prompt
        assert "RELATIVE TO THIS CHUNK START" in prompt


class TestGeminiTranscriber:
    @patch("src.transcription.transcriber.genai")
    def test_sends_audio_inline_and_parses(self, mock_genai: MagicMock) -> None:
        model = MagicMock()
        model.generate_content.return_value.text = json.dumps(VALID_PAYLOAD)
        mock_genai.GenerativeModel.return_value = model

        transcriber = GeminiTranscriber("key", "gemini-test")
        result = transcriber.transcribe(b"audio", "audio/wav", ["Speaker 1"], "Prior.")

        mock_genai.configure.assert_called_once_with(api_key="key")
        assert mock_genai.GenerativeModel.call_args.args[0] == "gemini-test"
        parts = model.generate_content.call_args.args[0]
        assert "Speaker 1" in parts[0]
        assert parts[1] == {"mime_type": "audio/wav", "data": b"audio"}
        assert len(result.lines) == 2

    @patch("src.transcription.transcriber.genai")
    def test_default_mime(self, mock_genai: MagicMock) -> None:
        model = MagicMock()
        model.generate_content.return_value.text = json.dumps(VALID_PAYLOAD)
        mock_genai.GenerativeModel.return_value = model

        GeminiTranscriber("key", "gemini-test").transcribe(b"audio", None)

        parts = model.generate_content.call_args.args[0]
        assert parts[1]["mime_type"] == "audio/webm"

    @patch("src.transcription.transcriber.genai")
    def test_empty_transcript_fails_explicitly(self, mock_genai: MagicMock) -> None:
        model = MagicMock()
        model.generate_content.return_value.text = json.dumps(
            {"transcript": [], "summary": "", "action": []}
        )
        mock_genai.GenerativeModel.return_value = model

        with pytest.raises(TranscriptionError):
            GeminiTranscriber("key", "gemini-test").transcribe(b"noise", "audio/wav")


# ---------------------------------------------------------------------------
# AssemblyAI diarizer tests
# ---------------------------------------------------------------------------


class TestSpeakerLabel:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("A", "Speaker 1"), ("b", "Speaker 2"), (0, "Speaker 1"), ("3", "Speaker 4"), ("AB", "Speaker AB")],
    )
    def test_mapping(self, raw: object, expected: str) -> None:
        assert speaker_label(raw) == expected


class TestAssemblyAIDiarizer:
    @patch("src.transcription.diarizer.aai")
    def test_utterances_become_segments(self, mock_aai: MagicMock) -> None:
        transcript = MagicMock()
        transcript.status = "completed"
        transcript.utterances = [
            MagicMock(speaker="A", start=0, end=1500),
            MagicMock(speaker="B", start=1500, end=4200),
        ]
        mock_aai.TranscriptStatus.error = "error"
        mock_aai.Transcriber.return_value.transcribe.return_value = transcript

        segments = AssemblyAIDiarizer("key").diarize(b"audio", "audio/wav")

        assert mock_aai.settings.api_key == "key"
        assert mock_aai.TranscriptionConfig.call_args.kwargs["speaker_labels"] is True
        assert [(s.speaker, s.start_ms, s.end_ms) for s in segments] == [
            ("Speaker 1", 0, 1500),
            ("Speaker 2", 1500, 4200),
        ]

    @patch("src.transcription.diarizer.aai")
    def test_error_status_raises(self, mock_aai: MagicMock) -> None:
        transcript = MagicMock()
        transcript.status = "error"
        transcript.error = "unsupported format"
        mock_aai.TranscriptStatus.error = "error"
        mock_aai.Transcriber.return_value.transcribe.return_value = transcript

        with pytest.raises(DiarizationError, match="unsupported format"):
            AssemblyAIDiarizer("key").diarize(b"audio", None)

    @patch("src.transcription.diarizer.aai")
    def test_no_utterances(self, mock_aai: MagicMock) -> None:
        transcript = MagicMock()
        transcript.status = "completed"
        transcript.utterances = None
        mock_aai.TranscriptStatus.error = "error"
        mock_aai.Transcriber.return_value.transcribe.return_value = transcript

        assert AssemblyAIDiarizer("key").diarize(b"audio", None) == []
