# -*- coding: utf-8 -*-
# rvz_converter/conversions.py
"""
DolphinTool command lines. All argument formatting for the external tool
lives here; callers pass typed values and get a ProcessResult back.
"""

import os
from collections import namedtuple

from rvz_converter import utils
from rvz_converter.errors import SourceNotFound, ToolNotFound

# DolphinTool prints this line when verification finds nothing wrong.
VERIFY_SUCCESS_MARKER = "Problems Found: No"

CompressionSettings = namedtuple("CompressionSettings", ["format", "level", "block_size"])


def compression_from_settings(settings):
    return CompressionSettings(
        format=settings.COMPRESSION_TYPE,
        level=settings.COMPRESSION_LEVEL,
        block_size=utils.parse_size(settings.BLOCK_SIZE),
    )


def build_convert_command(tool_path, source_path, output_path, compression, target_format="rvz"):
    command = [tool_path, 'convert',
               f'--format={target_format}',
               f'--input={source_path}',
               f'--output={output_path}',
               f'--block_size={utils.parse_size(compression.block_size)}',
               f'--compression={compression.format}']
    if compression.format != "none":
        command.append(f'--compression_level={int(compression.level)}')
    return command


def build_verify_command(tool_path, output_path):
    return [tool_path, 'verify', f'--input={output_path}']


def verification_passed(result):
    """Only the marker in stdout counts; the exit code of 'verify' is ignored."""
    return VERIFY_SUCCESS_MARKER in (result.stdout or "")


class DolphinToolInvoker:
    """Runs DolphinTool sub-commands and blocks until each one exits."""

    def __init__(self, tool_path, runner=None, output_signal=None):
        self.tool_path = tool_path
        self.runner = runner or utils.run_command
        self.output_signal = output_signal

    def _check_tool(self):
        # Re-checked on every call; the tool may disappear mid-run.
        if not os.path.isfile(self.tool_path):
            raise ToolNotFound(self.tool_path)

    def convert(self, job, compression, target_format="rvz"):
        self._check_tool()
        if not os.path.isfile(job.source_path):
            raise SourceNotFound(job.source_path)

        utils.emit_or_print(
            f">> Compressing to {target_format.upper()}: \"{os.path.basename(job.source_path)}\"",
            self.output_signal, fallback_color_code="green")
        command = build_convert_command(self.tool_path, job.source_path, job.output_path, compression, target_format)
        return self.runner(command, output_signal=self.output_signal)

    def verify(self, output_path):
        self._check_tool()
        utils.emit_or_print(f">> Verifying: \"{os.path.basename(output_path)}\"",
                            self.output_signal, fallback_color_code="cyan")
        return self.runner(build_verify_command(self.tool_path, output_path), output_signal=self.output_signal)
