# -*- coding: utf-8 -*-
# rvz_converter/utils.py

import os
import re
import shutil
import logging
import tempfile
import subprocess
from collections import namedtuple
from logging.handlers import RotatingFileHandler

import send2trash

from rvz_converter.errors import DirectoryNotFound, DisposalFailed, ToolNotFound

ANSI_ESCAPE_RE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
SIZE_RE = re.compile(r'^\s*(\d+)\s*([kmg]?)(?:i?b)?\s*$', re.IGNORECASE)
SIZE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB"]

LOG_FILE_NAME = "rvz_converter.log"

# Disposal reasons
DISCARD_FAILED_ARTIFACT = "discard failed artifact"
TRASH_CONVERTED_SOURCE = "trash converted source"

ProcessResult = namedtuple("ProcessResult", ["exit_code", "stdout", "stderr"])

logger = logging.getLogger("rvz_converter")
logger.addHandler(logging.NullHandler())

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "NONE": logging.INFO,
}

_COLOR_MAP = {
    "red": "\033[91m",
    "green": "\033[92m",
    "blue": "\033[94m",
    "yellow": "\033[93m",
    "magenta": "\033[95m",
    "cyan": "\033[96m",
    "white": "\033[97m",
    "bright_red": "\033[1;91m",
    "bright_green": "\033[1;92m",
    "bright_yellow": "\033[1;93m",
    "bright_cyan": "\033[1;96m",
}

_TYPE_COLORS = {
    "ERROR": "\033[91m",
    "WARN": "\033[93m",
    "SUCCESS": "\033[92m",
    "INFO": "\033[96m",
    "DEBUG": "\033[95m",
}


def _strip_ansi_codes(text):
    if not text:
        return ""
    return ANSI_ESCAPE_RE.sub('', text)


def emit_or_print(message, signal=None, fallback_color_code=None, is_error=False, type="NONE"):
    """
    Sends a message to the given sink if provided, otherwise prints it to the console.
    The console fallback is colored by fallback_color_code, or by type:
    DEBUG	Magenta	Low-priority diagnostic information.
    INFO	Cyan	Routine operations.
    SUCCESS	Green	An operation completed successfully.
    WARN	Yellow	Potential issues that are not critical errors.
    ERROR	Red	A failure that needs attention.
    Every message also goes to the run log.
    """
    level_name = "ERROR" if is_error else type.upper()
    logger.log(_LEVELS.get(level_name, logging.INFO), _strip_ansi_codes(str(message)))

    if signal:
        signal(message)
        return

    color_code_to_use = None
    if fallback_color_code:
        color_code_to_use = _COLOR_MAP.get(fallback_color_code.lower(), fallback_color_code)
    elif level_name in _TYPE_COLORS:
        color_code_to_use = _TYPE_COLORS[level_name]

    if color_code_to_use:
        print(f"{color_code_to_use}{message}\033[0m")
    else:
        print(f"\033[0m{message}\033[0m")


def configure_logging(log_dir, debug=False, max_bytes=5 * 1024 * 1024, backup_count=3):
    """
    Attaches a rotating file handler to the package logger. Returns the log file path.
    Falls back to the system temp dir when log_dir cannot be written.
    """
    for handler in list(logger.handlers):
        if getattr(handler, "_rvz_converter_file", False):
            logger.removeHandler(handler)
            handler.close()

    try:
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, LOG_FILE_NAME)
        handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    except OSError:
        fallback_dir = os.path.join(tempfile.gettempdir(), "rvz_converter")
        os.makedirs(fallback_dir, exist_ok=True)
        log_path = os.path.join(fallback_dir, LOG_FILE_NAME)
        handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")

    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(message)s"))
    handler.setLevel(logging.DEBUG if debug else logging.INFO)
    handler._rvz_converter_file = True
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return log_path


def run_command(command, cwd=None, output_signal=None):
    """
    Runs command to completion with both output streams captured.
    Returns a ProcessResult; the exit code is not interpreted here.
    """
    command_str = ' '.join(command)
    emit_or_print(f">> Running: {command_str}", output_signal, fallback_color_code="green")

    try:
        result = subprocess.run(
            command, cwd=cwd, capture_output=True, text=True, check=False, encoding='utf-8', errors='replace'
        )
    except OSError as e:
        # Missing, not executable, or not a program at all.
        raise ToolNotFound(command[0], e)

    stdout_clean = _strip_ansi_codes(result.stdout.strip())
    stderr_clean = _strip_ansi_codes(result.stderr.strip())
    logger.debug("exit code %s for: %s", result.returncode, command_str)
    if stdout_clean:
        logger.debug("--- STDOUT ---\n%s\n--------------", stdout_clean)
    if stderr_clean:
        logger.debug("--- STDERR ---\n%s\n--------------", stderr_clean)
    return ProcessResult(result.returncode, stdout_clean, stderr_clean)


def find_source_files(root_dir, recurse=False, extension="iso"):
    """
    Yields every regular file under root_dir whose extension matches, ignoring case.
    The root is checked now, not on first iteration.
    """
    if not os.path.isdir(root_dir):
        raise DirectoryNotFound(root_dir)
    wanted_ext = "." + extension.lower().lstrip(".")
    return _iter_matching_files(os.path.abspath(root_dir), recurse, wanted_ext)


def _iter_matching_files(root_dir, recurse, wanted_ext):
    if recurse:
        for dir_path, dir_names, file_names in os.walk(root_dir):
            dir_names.sort()  # walk order follows this list
            for name in sorted(file_names):
                path = os.path.join(dir_path, name)
                if _has_extension(path, wanted_ext):
                    yield path
    else:
        for name in sorted(os.listdir(root_dir)):
            path = os.path.join(root_dir, name)
            if _has_extension(path, wanted_ext):
                yield path


def _has_extension(path, wanted_ext):
    return os.path.splitext(path)[1].lower() == wanted_ext and os.path.isfile(path)


def derive_output_path(source_path, target_ext):
    """Same directory and base name as source_path, extension replaced."""
    base, _ = os.path.splitext(source_path)
    return f"{base}.{target_ext.lstrip('.')}"


def send_to_trash(path, reason, output_signal=None):
    """Moves path to the platform trash. Raises DisposalFailed if that is not possible."""
    try:
        send2trash.send2trash(path)
    except OSError as e:
        raise DisposalFailed(path, reason, e)
    emit_or_print(f"Sent to trash ({reason}): \"{path}\"", output_signal, fallback_color_code="yellow")


def get_free_disk_space_gb(path):
    try:
        stat = shutil.disk_usage(path)
        return stat.free / (1024**3)
    except OSError as e:
        emit_or_print(f"Error checking disk space for {path}: {e}", type="WARN")
        return None


def parse_size(value):
    """
    Converts a byte count or a size string such as '128KiB', '128 KB' or '2M'
    into an int. K, M and G are binary multiples.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a size: {value!r}")
    if isinstance(value, int):
        size = value
    else:
        match = SIZE_RE.match(str(value))
        if not match:
            raise ValueError(f"not a size: {value!r}")
        number, unit = match.groups()
        size = int(number) * 1024 ** " kmg".index(unit.lower() or " ")
    if size <= 0:
        raise ValueError(f"size must be positive, got {value!r}")
    return size


def format_size(num_bytes):
    value = float(num_bytes)
    for unit in SIZE_UNITS:
        if abs(value) < 1024 or unit == SIZE_UNITS[-1]:
            return f"{value:g} {unit}"
        value /= 1024
