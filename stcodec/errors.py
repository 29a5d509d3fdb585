"""Exception hierarchy for stcodec.

Three families, matching where a failure originates:

* :class:`StreamError` – the byte stream could not be opened, read or
  written.
* :class:`FormatError` – the bytes do not describe a valid file (or a host
  value has no representation in the format).
* :class:`ValidationError` – the caller asked to encode something the
  format cannot hold.
"""


class CodecError(Exception):
    """Base exception for every stcodec failure."""


# ── Stream ──────────────────────────────────────────────────────────────────


class StreamError(CodecError, OSError):
    """Stream not open, not readable/writable, or short read/write."""


class NotOpenError(StreamError):
    pass


class ReadUnderrunError(StreamError):
    pass


class WriteFailedError(StreamError):
    pass


# ── Format ──────────────────────────────────────────────────────────────────


class FormatError(CodecError, ValueError):
    """Malformed header or unrepresentable element type."""


class InvalidHeaderLengthError(FormatError):
    pass


class InvalidMetadataError(FormatError):
    """Header text is not UTF-8, not JSON, or not a JSON object."""


class MissingFieldError(FormatError):
    pass


class MalformedEntryError(FormatError):
    pass


class UnknownTypeError(FormatError):
    """Format tag outside the known set."""


class UnsupportedTypeError(FormatError):
    """Host dtype with no format tag."""


class DuplicateKeyError(FormatError):
    pass


class InvalidOffsetsError(FormatError):
    """``data_offsets`` reversed, overlapping, mis-sized or out of bounds."""


# ── Validation (encode side) ────────────────────────────────────────────────


class ValidationError(CodecError, ValueError):
    """Input to an encode call cannot be represented."""


class EmptyTensorError(ValidationError):
    pass


class InvalidTensorNameError(ValidationError):
    pass


class InvalidMetadataValueError(ValidationError):
    pass
