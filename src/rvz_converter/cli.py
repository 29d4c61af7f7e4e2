# rvz_converter/cli.py
"""
Command-line entry point: reads settings, shows what is about to happen,
asks once for confirmation, then converts every .iso under the input folder.
"""

import sys
import argparse

from rvz_converter import batch
from rvz_converter import config
from rvz_converter import utils
from rvz_converter.errors import ConverterError

EXIT_OK = 0
EXIT_DECLINED = 1
EXIT_ERROR = 2


def get_yes_no_input(prompt, default_yes=True):
    """Gets a yes/no input from the user. Closed stdin counts as 'no'."""
    default_indicator = "(Y/n)" if default_yes else "(y/N)"
    while True:
        try:
            choice = input(f"{prompt} {default_indicator}: ").strip().lower()
        except EOFError:
            utils.emit_or_print("\nNo input available; answering 'no'. Use --yes to run unattended.", type="WARN")
            return False
        if not choice:  # User pressed Enter
            return default_yes
        if choice in ['y', 'yes']:
            return True
        if choice in ['n', 'no']:
            return False
        utils.emit_or_print("Invalid input. Please enter 'y' or 'n'.", is_error=True)


class ConsoleConfirmer:
    def confirm(self, prompt, default_yes=True):
        return get_yes_no_input(prompt, default_yes=default_yes)


class AutoConfirmer:
    """Answers every prompt the same way without asking."""

    def __init__(self, answer=True):
        self.answer = answer

    def confirm(self, prompt, default_yes=True):
        utils.emit_or_print(f"{prompt} -> {'yes' if self.answer else 'no'} (automatic)", type="DEBUG")
        return self.answer


def build_parser():
    parser = argparse.ArgumentParser(
        prog="rvz-converter",
        description="Batch-convert GameCube/Wii .iso images to .rvz with DolphinTool.")
    parser.add_argument('input_root', nargs='?', default=None,
                        help='Folder to scan for .iso files.')
    parser.add_argument('--tool', dest='tool_path', default=None,
                        help='Path to DolphinTool (default: found in PATH).')
    parser.add_argument('-r', '--recursive', action='store_true', default=None,
                        help='Also scan sub-folders.')
    parser.add_argument('--overwrite', action='store_true', default=None,
                        help='Overwrite existing .rvz files (used with --no-confirm-overwrite).')
    parser.add_argument('--no-confirm-overwrite', dest='confirm_overwrite', action='store_false', default=None,
                        help='Do not ask before overwriting; --overwrite decides.')
    parser.add_argument('--trash-source', action='store_true', default=None,
                        help='Send each .iso to the trash after it converts and verifies.')
    parser.add_argument('--compression', choices=list(config.COMPRESSION_LEVEL_RANGES), default=None,
                        help='RVZ compression type.')
    parser.add_argument('--level', type=int, default=None,
                        help='Compression level (zstd 1-22, bzip2/lzma/lzma2 1-9).')
    parser.add_argument('--block-size', default=None,
                        help='Block size, e.g. 131072, 128KiB or 2MiB (32 KiB to 2 MiB).')
    parser.add_argument('--log-dir', default=None, help='Folder for the log file.')
    parser.add_argument('--debug', action='store_true', default=None, help='Verbose logging.')
    parser.add_argument('--settings', dest='settings_file', default=config.SETTINGS_FILE_PATH,
                        help='JSON settings file to read.')
    parser.add_argument('--save-settings', action='store_true',
                        help='Write the effective settings back to the settings file.')
    parser.add_argument('-y', '--yes', action='store_true',
                        help='Answer yes to every prompt.')
    return parser


def settings_from_args(args):
    settings = config.load_app_settings(args.settings_file)
    settings.apply_overrides({
        "INPUT_ROOT": args.input_root,
        "TOOL_PATH": args.tool_path,
        "RECURSE": args.recursive,
        "ALLOW_OVERWRITE": args.overwrite,
        "CONFIRM_OVERWRITE": args.confirm_overwrite,
        "TRASH_ON_SUCCESS": args.trash_source,
        "COMPRESSION_TYPE": args.compression,
        "COMPRESSION_LEVEL": args.level,
        "BLOCK_SIZE": args.block_size,
        "LOG_DIRECTORY": args.log_dir,
        "DEBUG_MODE": args.debug,
    })
    return settings


def print_banner(settings):
    utils.emit_or_print("=================================================", fallback_color_code="cyan")
    utils.emit_or_print(">>        ISO to RVZ Batch Converter           <<", fallback_color_code="cyan")
    utils.emit_or_print("=================================================", fallback_color_code="cyan")
    if settings.COMPRESSION_TYPE == "none":
        compression = "none"
    else:
        compression = f"{settings.COMPRESSION_TYPE} level {settings.COMPRESSION_LEVEL}"
    lines = [
        f"DolphinTool:      {settings.TOOL_PATH}",
        f"Input folder:     {settings.INPUT_ROOT}",
        f"Sub-folders:      {'yes' if settings.RECURSE else 'no'}",
        f"Compression:      {compression}",
        f"Block size:       {utils.format_size(settings.BLOCK_SIZE)}",
        f"Existing output:  {'ask' if settings.CONFIRM_OVERWRITE else ('overwrite' if settings.ALLOW_OVERWRITE else 'skip')}",
        f"Trash source:     {'yes' if settings.TRASH_ON_SUCCESS else 'no'}",
    ]
    for line in lines:
        utils.emit_or_print(line)


def main(argv=None, confirmer=None, invoker=None):
    """Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
        settings.validate()
    except ConverterError as e:
        utils.emit_or_print(f"ERROR: {e}", is_error=True)
        return EXIT_ERROR

    log_path = utils.configure_logging(settings.LOG_DIRECTORY, debug=settings.DEBUG_MODE)
    utils.emit_or_print(f"Logging to: {log_path}", type="DEBUG")

    if args.save_settings:
        config.save_app_settings(settings, args.settings_file)

    if confirmer is None:
        confirmer = AutoConfirmer(True) if args.yes else ConsoleConfirmer()

    print_banner(settings)
    if not confirmer.confirm("\nStart converting?", default_yes=True):
        utils.emit_or_print("Cancelled. Nothing was converted.", type="WARN")
        return EXIT_DECLINED

    ctx = batch.RunContext(settings, confirmer, invoker=invoker)
    try:
        batch.run_batch(ctx)
    except ConverterError as e:
        utils.emit_or_print(f"ERROR: {e}. Stopping.", is_error=True)
        return EXIT_ERROR
    return EXIT_OK


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
