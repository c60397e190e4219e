import json
from unittest.mock import MagicMock, patch

import pytest

from ssml_tts import cli
from ssml_tts.services.errors import SynthesisError, UpstreamError


@pytest.fixture(autouse=True)
def _no_env_budget(monkeypatch):
    monkeypatch.delenv("SSML_TTS_MAX_LEN", raising=False)


def _json_line(out: str) -> dict:
    return json.loads(next(line for line in out.splitlines() if line.startswith("{")))


def test_cli_dry_run(capsys):
    code = cli.main(["--text", "First paragraph.\n\nSecond paragraph."])
    assert code == 0
    out = capsys.readouterr().out
    assert "CHUNK_PLAN_OK" in out
    assert "[000]" in out


def test_cli_positional_text_json(capsys):
    code = cli.main(["First one here. Second one.", "--max-len", "20", "--json"])
    assert code == 0
    payload = _json_line(capsys.readouterr().out)
    assert payload["dry_run"] is True
    assert payload["count"] == 2
    assert payload["chunks"][0]["ssml"] == "<speak>First one here.</speak>"


def test_cli_file_input(tmp_path, capsys):
    path = tmp_path / "chapter.txt"
    path.write_text("Café au lait.", encoding="utf-8")
    code = cli.main(["--file", str(path), "--ascii-only", "--json"])
    assert code == 0
    assert _json_line(capsys.readouterr().out)["chunks"][0]["ssml"] == "<speak>Cafe au lait.</speak>"


def test_cli_ssml_input_flattened(capsys):
    code = cli.main(["--text", "<speak>Hello <break time='1s'/> world.</speak>", "--json"])
    assert code == 0
    assert _json_line(capsys.readouterr().out)["chunks"][0]["ssml"] == "<speak>Hello world.</speak>"


@pytest.mark.parametrize("argv", [
    [],
    ["--file", "does-not-exist.txt"],
    ["--text", "x", "--file", "also.txt"],
    ["--text", "hello", "--max-len", "0"],
])
def test_cli_usage_errors(argv, capsys):
    assert cli.main(argv) == cli.EXIT_USAGE
    assert "ssml-tts:" in capsys.readouterr().err


def test_cli_empty_file(tmp_path, capsys):
    path = tmp_path / "empty.txt"
    path.write_text("  \n", encoding="utf-8")
    assert cli.main(["--file", str(path)]) == cli.EXIT_USAGE


def test_cli_synth_writes_segments(tmp_path, capsys):
    synth = MagicMock()
    synth.synthesize.side_effect = lambda ssml, voice, audio: b"ID3" + ssml.encode()

    with patch("ssml_tts.tts.synthesizer.GoogleSpeechSynthesizer.from_config", return_value=synth):
        code = cli.main([
            "--text", "First paragraph.\n\nSecond paragraph.",
            "--max-len", "20", "--synth", "--out", str(tmp_path),
        ])

    assert code == 0
    assert "CLI_OK" in capsys.readouterr().out
    files = sorted(p.name for p in tmp_path.iterdir())
    assert files == ["segment_000.mp3", "segment_001.mp3"]
    assert (tmp_path / "segment_000.mp3").read_bytes() == b"ID3<speak>First paragraph.</speak>"


def test_cli_synth_provider_failure(tmp_path, capsys):
    synth = MagicMock()
    synth.synthesize.side_effect = SynthesisError("Speech synthesis failed: quota exceeded")

    with patch("ssml_tts.tts.synthesizer.GoogleSpeechSynthesizer.from_config", return_value=synth):
        code = cli.main(["--text", "Hello.", "--synth", "--out", str(tmp_path)])

    assert code == cli.EXIT_ERROR
    captured = capsys.readouterr()
    assert "ssml-tts: Speech synthesis failed: quota exceeded" in captured.err
    assert "CLI_OK" not in captured.out


def test_cli_wait_operation(capsys):
    name = "projects/123/locations/global/operations/42"
    with patch("ssml_tts.tts.long_audio.LongAudioClient") as client_cls:
        client_cls.return_value.wait.return_value = {"name": name, "done": True}
        code = cli.main(["--wait-operation", name, "--timeout", "30"])

    assert code == 0
    client_cls.return_value.wait.assert_called_once_with(name, timeout_s=30.0)
    out = capsys.readouterr().out
    assert _json_line(out) == {"name": name, "done": True}
    assert "LONG_AUDIO_OK" in out


def test_cli_wait_operation_failed(capsys):
    with patch("ssml_tts.tts.long_audio.LongAudioClient") as client_cls:
        client_cls.return_value.wait.return_value = {"name": "op", "done": True, "error": {"code": 3, "message": "bad voice"}}
        code = cli.main(["--wait-operation", "op"])

    assert code == cli.EXIT_ERROR
    assert "operation failed: bad voice" in capsys.readouterr().err


def test_cli_wait_operation_timeout(capsys):
    with patch("ssml_tts.tts.long_audio.LongAudioClient") as client_cls:
        client_cls.return_value.wait.side_effect = UpstreamError("Long audio operation not done after 1.0s")
        code = cli.main(["--wait-operation", "op", "--timeout", "1"])

    assert code == cli.EXIT_ERROR
    assert "not done after" in capsys.readouterr().err


def test_cli_wait_operation_rejects_text(capsys):
    assert cli.main(["--wait-operation", "op", "--text", "Hello."]) == cli.EXIT_USAGE
    assert "ssml-tts:" in capsys.readouterr().err


@pytest.mark.slow
def test_cli_synth_google(tmp_path):
    """Needs Google credentials; deselected with -m 'not slow'."""
    code = cli.main(["--text", "Hello.", "--synth", "--out", str(tmp_path)])
    assert code == 0
    assert (tmp_path / "segment_000.mp3").stat().st_size > 0
