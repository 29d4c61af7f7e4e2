# rvz_converter/errors.py
"""
Exceptions raised by the converter. Per-job conversion and verification
failures are outcomes, not exceptions; see batch.py.
"""


class ConverterError(Exception):
    """Base class for every error the converter raises on purpose."""


class ConfigurationError(ConverterError):
    """Bad settings. Fatal, raised before any job runs."""


class DirectoryNotFound(ConfigurationError):
    def __init__(self, path):
        super().__init__(f"Input directory not found or not a directory: \"{path}\"")
        self.path = path


class ToolNotFound(ConverterError):
    def __init__(self, tool_path, cause=None):
        message = f"DolphinTool not found at: \"{tool_path}\""
        if cause is not None:
            message = f"DolphinTool could not be started from \"{tool_path}\": {cause}"
        super().__init__(message)
        self.tool_path = tool_path
        self.cause = cause


class SourceNotFound(ConverterError):
    def __init__(self, source_path):
        super().__init__(f"Source file no longer exists: \"{source_path}\"")
        self.source_path = source_path


class DisposalFailed(ConverterError):
    def __init__(self, path, reason, cause=None):
        message = f"Could not send \"{path}\" to trash ({reason})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.path = path
        self.reason = reason
        self.cause = cause
