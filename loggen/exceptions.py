"""
Exceptions raised by the log generator.
"""


class LogGeneratorError(Exception):
    """Base class for log generator errors."""


class ConfigError(LogGeneratorError, ValueError):
    """Invalid or missing configuration, detected before any line is emitted."""


class SinkError(LogGeneratorError):
    """A sink could not deliver records to its destination."""
