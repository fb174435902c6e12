"""Exceptions and warnings raised by zx_scr_converter."""

from __future__ import annotations


class ConversionError(Exception):
    """Custom exception for conversion errors."""


class FormatMismatchError(ConversionError):
    """Input length and file extension match no known screen format."""


class MalformedHeaderError(ConversionError):
    """An SCA header is invalid (signature, frame count, payload type or length)."""


class VersionMismatchWarning(RuntimeWarning):
    """The file declares a format version this package does not fully support."""
