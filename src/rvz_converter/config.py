# rvz_converter/config.py
import os
import json
import shutil
import platform  # To pick the tool's executable name

from rvz_converter import utils
from rvz_converter.errors import ConfigurationError, DirectoryNotFound


# --- SETTINGS FILE ---
SETTINGS_FILE_PATH = os.path.join(os.path.expanduser("~"), ".rvz_converter.json")

# --- FORMATS ---
SOURCE_EXTENSION = "iso"
TARGET_FORMAT = "rvz"

# Level range per RVZ compression type. None means the type takes no level.
COMPRESSION_LEVEL_RANGES = {
    "none": None,
    "zstd": (1, 22),
    "bzip2": (1, 9),
    "lzma": (1, 9),
    "lzma2": (1, 9),
}

MIN_BLOCK_SIZE = 32 * 1024
MAX_BLOCK_SIZE = 2 * 1024 * 1024

FLAG_SETTINGS = ("RECURSE", "ALLOW_OVERWRITE", "CONFIRM_OVERWRITE", "TRASH_ON_SUCCESS", "DEBUG_MODE")

# Spellings accepted for on/off settings coming from the JSON file.
_FLAG_WORDS = {
    "true": True, "yes": True, "on": True, "1": True,
    "false": False, "no": False, "off": False, "0": False,
}


def get_default_tool_path():
    """Returns the DolphinTool location: PATH first, then the bundled ext/ folder."""
    if platform.system() == "Windows":
        names = ["DolphinTool.exe", "DolphinTool"]
    else:
        names = ["dolphin-tool", "DolphinTool"]
    for name in names:
        found = shutil.which(name)
        if found:
            return found
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "ext", names[0])


def _coerce_flag(name, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _FLAG_WORDS:
        return _FLAG_WORDS[value.strip().lower()]
    raise ConfigurationError(f"{name} must be true or false, got '{value}'")


def _coerce_level(value):
    """Whole numbers only; 5.0 is accepted, 5.7 and True are not."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Compression level must be a whole number, got '{value}'")
    if isinstance(value, float):
        if not value.is_integer():
            raise ConfigurationError(f"Compression level must be a whole number, got '{value}'")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Compression level must be a whole number, got '{value}'")


# --- DEFAULT SETTINGS ---
DEFAULT_SETTINGS = {
    # Tool and input
    "TOOL_PATH": None,  # Resolved by get_default_tool_path() when unset
    "INPUT_ROOT": None,
    "RECURSE": False,

    # Output handling
    "ALLOW_OVERWRITE": False,
    "CONFIRM_OVERWRITE": True,
    "TRASH_ON_SUCCESS": False,

    # DolphinTool - RVZ
    "COMPRESSION_TYPE": "zstd",
    "COMPRESSION_LEVEL": 5,
    "BLOCK_SIZE": 131072,

    # Logging
    "LOG_DIRECTORY": os.path.join(os.path.expanduser("~"), ".rvz_converter", "logs"),
    "DEBUG_MODE": False,
}


class AppSettings:
    """
    Holds all settings for one run, initialized from DEFAULT_SETTINGS.
    Built once at startup and treated as read-only while jobs run.
    """
    def __init__(self, **overrides):
        for key, value in DEFAULT_SETTINGS.items():
            setattr(self, key, value)
        self.apply_overrides(overrides)

    def load(self, file_path):
        """Loads settings from the JSON file into the instance's attributes."""
        if not os.path.exists(file_path):
            utils.emit_or_print(f"Settings file not found at {file_path}. Using default settings.", type="DEBUG")
            return

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                loaded_data = json.load(f)
        except json.JSONDecodeError:
            utils.emit_or_print(f"ERROR: Could not decode JSON from {file_path}. Using default settings.", is_error=True)
            return
        except OSError as e:
            utils.emit_or_print(f"ERROR: Could not load settings from {file_path}: {e}. Using default settings.", is_error=True)
            return

        if not isinstance(loaded_data, dict):
            utils.emit_or_print(f"ERROR: Settings file {file_path} does not hold an object. Using default settings.", is_error=True)
            return

        for key in DEFAULT_SETTINGS.keys():  # Known keys only
            if key in loaded_data:
                setattr(self, key, loaded_data[key])

        utils.emit_or_print(f"Settings loaded from: {file_path}", type="DEBUG")

    def save(self, file_path):
        """Saves the current settings to the JSON file."""
        settings_to_save = self.as_dict()
        try:
            parent_dir = os.path.dirname(file_path)
            if parent_dir:
                os.makedirs(parent_dir, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(settings_to_save, f, indent=4)
            utils.emit_or_print(f"Settings saved to: {file_path}", type="SUCCESS")
        except OSError as e:
            utils.emit_or_print(f"ERROR: Could not save settings to {file_path}: {e}", is_error=True)

    def apply_overrides(self, overrides):
        """Sets every known key whose override value is not None."""
        for key, value in overrides.items():
            if key not in DEFAULT_SETTINGS:
                raise ConfigurationError(f"Unknown setting: {key}")
            if value is not None:
                setattr(self, key, value)

    def as_dict(self):
        return {key: getattr(self, key) for key in DEFAULT_SETTINGS.keys()}

    def validate(self):
        """
        Checks and normalizes the settings. Raises ConfigurationError
        (DirectoryNotFound for the input root) on the first problem found.
        """
        if not self.TOOL_PATH:
            self.TOOL_PATH = get_default_tool_path()
        self.TOOL_PATH = os.path.abspath(os.path.expanduser(self.TOOL_PATH))
        if not os.path.isfile(self.TOOL_PATH):
            raise ConfigurationError(f"DolphinTool not found at: \"{self.TOOL_PATH}\"")

        if not self.INPUT_ROOT:
            raise ConfigurationError("No input directory given.")
        self.INPUT_ROOT = os.path.abspath(os.path.expanduser(self.INPUT_ROOT))
        if not os.path.isdir(self.INPUT_ROOT):
            raise DirectoryNotFound(self.INPUT_ROOT)

        compression_type = str(self.COMPRESSION_TYPE).lower()
        if compression_type not in COMPRESSION_LEVEL_RANGES:
            allowed = ", ".join(COMPRESSION_LEVEL_RANGES)
            raise ConfigurationError(f"Unknown compression type '{self.COMPRESSION_TYPE}'. Expected one of: {allowed}")
        self.COMPRESSION_TYPE = compression_type

        level_range = COMPRESSION_LEVEL_RANGES[compression_type]
        if level_range is not None:
            level = _coerce_level(self.COMPRESSION_LEVEL)
            low, high = level_range
            if not low <= level <= high:
                raise ConfigurationError(
                    f"Compression level {level} is out of range for {compression_type} ({low}-{high})")
            self.COMPRESSION_LEVEL = level

        try:
            block_size = utils.parse_size(self.BLOCK_SIZE)
        except ValueError as e:
            raise ConfigurationError(f"Invalid block size: {e}")
        if block_size < MIN_BLOCK_SIZE or block_size > MAX_BLOCK_SIZE or block_size & (block_size - 1):
            raise ConfigurationError(
                f"Block size must be a power of two between {utils.format_size(MIN_BLOCK_SIZE)} "
                f"and {utils.format_size(MAX_BLOCK_SIZE)}, got {utils.format_size(block_size)}")
        self.BLOCK_SIZE = block_size

        for flag in FLAG_SETTINGS:
            setattr(self, flag, _coerce_flag(flag, getattr(self, flag)))
        return self


def load_app_settings(file_path=SETTINGS_FILE_PATH):
    """Returns a fresh AppSettings with the JSON file applied on top of the defaults."""
    settings = AppSettings()
    settings.load(file_path)
    return settings


def save_app_settings(settings, file_path=SETTINGS_FILE_PATH):
    settings.save(file_path)
