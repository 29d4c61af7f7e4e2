from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from rvz_converter import config
from rvz_converter import utils
from rvz_converter.utils import ProcessResult

PASSED_VERIFY_OUTPUT = "Hashes:\n  CRC32: 1234abcd\nProblems Found: No\n"
FAILED_VERIFY_OUTPUT = "Problems Found: Yes\nSeverity: High - Bad block\n"


class FakeInvoker:
    """Stands in for DolphinTool. Results are keyed by file base name."""

    def __init__(self, convert_codes=None, verify_outputs=None, verify_codes=None, partial_output=False):
        self.convert_codes = convert_codes or {}
        self.verify_outputs = verify_outputs or {}
        self.verify_codes = verify_codes or {}
        self.partial_output = partial_output
        self.calls: list[tuple[str, str]] = []

    def convert(self, job, compression, target_format="rvz"):
        name = os.path.basename(job.source_path)
        self.calls.append(("convert", name))
        code = self.convert_codes.get(name, 0)
        if code == 0 or self.partial_output:
            Path(job.output_path).write_bytes(b"RVZ\x01")
        stderr = f"Conversion failed for {name}" if code else ""
        return ProcessResult(code, f"Converting {name}", stderr)

    def verify(self, output_path):
        name = os.path.basename(output_path)
        self.calls.append(("verify", name))
        stdout = self.verify_outputs.get(name, PASSED_VERIFY_OUTPUT)
        return ProcessResult(self.verify_codes.get(name, 0), stdout, "")


class ScriptedConfirmer:
    """Returns queued answers in order; records every prompt."""

    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.prompts: list[str] = []

    def confirm(self, prompt, default_yes=True):
        self.prompts.append(prompt)
        return self.answers.pop(0)


@pytest.fixture(autouse=True)
def trash(monkeypatch) -> list[str]:
    """Replace the real trash with a recorder that deletes the file."""

    trashed: list[str] = []

    def fake_send2trash(path):
        trashed.append(os.path.abspath(path))
        os.remove(path)

    monkeypatch.setattr(utils.send2trash, "send2trash", fake_send2trash)
    return trashed


@pytest.fixture(autouse=True)
def _close_log_handlers() -> Iterator[None]:
    yield
    for handler in list(utils.logger.handlers):
        if getattr(handler, "_rvz_converter_file", False):
            utils.logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def tool_path(tmp_path: Path) -> Path:
    tool = tmp_path / "bin" / "dolphin-tool"
    tool.parent.mkdir()
    tool.write_text("")
    return tool


@pytest.fixture
def games_dir(tmp_path: Path) -> Path:
    games = tmp_path / "games"
    games.mkdir()
    return games


@pytest.fixture
def make_settings(tmp_path: Path, tool_path: Path, games_dir: Path):
    """Build validated settings pointing at the temp tool and games folder."""

    def _make(**overrides):
        values = {
            "TOOL_PATH": str(tool_path),
            "INPUT_ROOT": str(games_dir),
            "LOG_DIRECTORY": str(tmp_path / "logs"),
        }
        values.update(overrides)
        return config.AppSettings(**values).validate()

    return _make
