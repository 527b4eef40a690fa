# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the command-line entry point.
"""

import json
from pathlib import Path

import yaml

from voxsync.main import main


def write_char_payload(path: Path, text: str) -> Path:
    path.write_text(json.dumps({
        "characters": list(text),
        "character_start_times_seconds": [i * 0.1 for i in range(len(text))],
        "character_end_times_seconds": [(i + 1) * 0.1 for i in range(len(text))],
    }), encoding="utf-8")
    return path


def test_align_prints_words(tmp_path, capsys):
    """align prints the aligned words as JSON."""
    payload = write_char_payload(tmp_path / "p0.json", "Hello World")

    code = main(["--config", str(tmp_path / "none.yaml"),
                 "align", str(payload), "--text", "Hello World"])

    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert [w["word"] for w in result["words"]] == ["Hello", "World"]
    assert result["words"][1]["char_offset"] == 6
    assert result["alignment_confidence"] == 1.0


def test_align_text_file(tmp_path, capsys):
    """The source text can come from a file."""
    payload = tmp_path / "words.json"
    payload.write_text(json.dumps({"words": [
        {"word": "Hello", "start": 0.0, "end": 0.4},
        {"word": "world", "start": 0.4, "end": 0.9},
    ]}), encoding="utf-8")
    text_file = tmp_path / "para.txt"
    text_file.write_text("Hello, world!\n", encoding="utf-8")

    code = main(["--config", str(tmp_path / "none.yaml"),
                 "align", str(payload), "--text-file", str(text_file)])

    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert [(w["char_offset"], w["char_length"]) for w in result["words"]] == [(0, 6), (7, 6)]


def test_align_missing_payload(tmp_path, capsys):
    """A missing payload file is an error, not a crash."""
    code = main(["--config", str(tmp_path / "none.yaml"),
                 "align", str(tmp_path / "missing.json"), "--text", "x"])

    assert code == 1
    assert "Error" in capsys.readouterr().err


def test_replay(tmp_path, capsys):
    """replay prints paragraph and word events."""
    page = tmp_path / "page.txt"
    page.write_text("Hello World\n\nSecond paragraph here\n", encoding="utf-8")
    payload = write_char_payload(tmp_path / "p0.json", "Hello World")

    code = main(["--config", str(tmp_path / "none.yaml"),
                 "replay", str(page), "--payload", f"0={payload}"])

    out = capsys.readouterr().out
    assert code == 0
    assert "'Hello'" in out
    assert "'World'" in out
    assert "paragraph 1" in out
    assert "alignment: 2 words" in out
    assert "Done:" in out


def test_replay_bad_payload_argument(tmp_path, capsys):
    """Malformed --payload values are reported."""
    page = tmp_path / "page.txt"
    page.write_text("Hello World\n", encoding="utf-8")

    code = main(["--config", str(tmp_path / "none.yaml"),
                 "replay", str(page), "--payload", "zero.json"])

    assert code == 1
    assert "INDEX=FILE" in capsys.readouterr().err


def test_replay_empty_page(tmp_path, capsys):
    page = tmp_path / "page.txt"
    page.write_text("\n\n", encoding="utf-8")

    assert main(["--config", str(tmp_path / "none.yaml"), "replay", str(page)]) == 1


def test_save_config(tmp_path, capsys):
    """--save-config writes the options to the config file."""
    config_path = tmp_path / ".voxsync.yaml"

    code = main(["--config", str(config_path), "--tick-ms", "25", "--save-config"])

    assert code == 0
    saved = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert saved["sync"]["tick_interval_ms"] == 25.0


def test_no_command_prints_help(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "none.yaml")]) == 2
    assert "usage" in capsys.readouterr().out
