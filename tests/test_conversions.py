import pytest

from rvz_converter import batch
from rvz_converter import conversions
from rvz_converter.errors import SourceNotFound, ToolNotFound
from rvz_converter.utils import ProcessResult


class RecordingRunner:
    def __init__(self, result=None):
        self.result = result or ProcessResult(0, "", "")
        self.commands = []

    def __call__(self, command, output_signal=None):
        self.commands.append(command)
        return self.result


def test_build_convert_command():
    compression = conversions.CompressionSettings("zstd", 5, "128KiB")

    command = conversions.build_convert_command("/opt/dolphin-tool", "/data/game.iso", "/data/game.rvz", compression)

    assert command == [
        "/opt/dolphin-tool", "convert",
        "--format=rvz",
        "--input=/data/game.iso",
        "--output=/data/game.rvz",
        "--block_size=131072",
        "--compression=zstd",
        "--compression_level=5",
    ]


def test_build_convert_command_without_compression_has_no_level():
    compression = conversions.CompressionSettings("none", 5, 32768)

    command = conversions.build_convert_command("dolphin-tool", "a.iso", "a.rvz", compression)

    assert "--compression=none" in command
    assert not any(arg.startswith("--compression_level") for arg in command)


def test_build_verify_command():
    assert conversions.build_verify_command("dolphin-tool", "/data/game.rvz") == [
        "dolphin-tool", "verify", "--input=/data/game.rvz",
    ]


@pytest.mark.parametrize(
    "result, passed",
    [
        (ProcessResult(0, "Problems Found: No\n", ""), True),
        (ProcessResult(1, "Problems Found: No\n", "warning"), True),
        (ProcessResult(0, "Problems Found: Yes\n", ""), False),
        (ProcessResult(0, "", ""), False),
        (ProcessResult(0, None, ""), False),
        (ProcessResult(0, "", "Problems Found: No"), False),
    ],
)
def test_verification_passed_only_looks_at_stdout_marker(result, passed):
    assert conversions.verification_passed(result) is passed


def test_invoker_convert_runs_tool(make_settings, games_dir, tool_path):
    source = games_dir / "game.iso"
    source.write_text("iso")
    settings = make_settings(COMPRESSION_TYPE="lzma", COMPRESSION_LEVEL=9, BLOCK_SIZE="1MiB")
    runner = RecordingRunner(ProcessResult(0, "ok", ""))
    invoker = conversions.DolphinToolInvoker(settings.TOOL_PATH, runner=runner, output_signal=lambda m: None)
    job = batch.job_for_source(str(source))

    result = invoker.convert(job, conversions.compression_from_settings(settings))

    assert result.exit_code == 0
    (command,) = runner.commands
    assert command[0] == str(tool_path)
    assert f"--output={games_dir / 'game.rvz'}" in command
    assert "--block_size=1048576" in command
    assert "--compression_level=9" in command


def test_invoker_checks_tool_on_every_call(tmp_path, tool_path, games_dir):
    source = games_dir / "game.iso"
    source.write_text("iso")
    runner = RecordingRunner()
    invoker = conversions.DolphinToolInvoker(str(tool_path), runner=runner, output_signal=lambda m: None)
    job = batch.job_for_source(str(source))
    compression = conversions.CompressionSettings("zstd", 5, 131072)

    invoker.convert(job, compression)
    tool_path.unlink()

    with pytest.raises(ToolNotFound):
        invoker.convert(job, compression)
    with pytest.raises(ToolNotFound):
        invoker.verify(job.output_path)
    assert len(runner.commands) == 1


def test_invoker_rejects_vanished_source(tool_path, games_dir):
    runner = RecordingRunner()
    invoker = conversions.DolphinToolInvoker(str(tool_path), runner=runner, output_signal=lambda m: None)
    job = batch.job_for_source(str(games_dir / "gone.iso"))

    with pytest.raises(SourceNotFound):
        invoker.convert(job, conversions.CompressionSettings("zstd", 5, 131072))
    assert runner.commands == []


def test_invoker_verify_runs_tool(tool_path):
    runner = RecordingRunner(ProcessResult(0, "Problems Found: No", ""))
    invoker = conversions.DolphinToolInvoker(str(tool_path), runner=runner, output_signal=lambda m: None)

    result = invoker.verify("/data/game.rvz")

    assert conversions.verification_passed(result)
    assert runner.commands == [[str(tool_path), "verify", "--input=/data/game.rvz"]]
