"""Error taxonomy for decoding, measurement and album aggregation."""
from __future__ import annotations


class LoudgainerError(Exception):
    """Base class for all loudgainer errors."""


class DomainMismatch(LoudgainerError, TypeError):
    """Samples from two numeric domains were mixed in one buffer."""


class UnsupportedContainer(LoudgainerError, ValueError):
    """No reader could open the file's container."""


class UnsupportedCodec(LoudgainerError, ValueError):
    """The container opened but its sample format has no numeric domain."""


class DecodeError(LoudgainerError, ValueError):
    """Decoding failed partway through the stream."""


class DecodeUnavailable(LoudgainerError, RuntimeError):
    """Every decode path, including the fallback, failed."""


class InvalidChannelCount(LoudgainerError, ValueError):
    pass


class InvalidSampleRate(LoudgainerError, ValueError):
    pass


class UnsupportedConfiguration(LoudgainerError, ValueError):
    """The measurement engine or decoder cannot handle the requested setup."""


class InsufficientData(LoudgainerError, ValueError):
    """Not enough audio for a stable loudness measurement."""


class AlbumUnavailable(LoudgainerError, RuntimeError):
    """Album aggregation needs every track of the batch to be measured."""


class TagWriteError(LoudgainerError, RuntimeError):
    pass


def describe(exc: BaseException) -> str:
    """Format an exception as '<ClassName>: message' for per-file reports."""
    msg = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {msg}" if msg else name
