"""stcodec – a lazy-loading safetensors codec for numpy."""

__version__ = "0.1.0"

from .dtypes import from_numpy, from_tag, to_numpy, to_tag
from .errors import (
    CodecError, StreamError, FormatError, ValidationError,
    NotOpenError, ReadUnderrunError, WriteFailedError,
    InvalidHeaderLengthError, InvalidMetadataError, MissingFieldError,
    MalformedEntryError, UnknownTypeError, UnsupportedTypeError,
    DuplicateKeyError, InvalidOffsetsError,
    EmptyTensorError, InvalidTensorNameError, InvalidMetadataValueError,
)
from .format import (
    DType, DTYPE_TAGS, DTYPE_SIZES,
    METADATA_KEY, MAX_HEADER_LENGTH, FILE_EXTENSION,
)
from .header import FileHeader, TensorInfo
from .lazy import LazyTensor
from .serialization import (
    TensorFile, load, load_bytes, load_file, save, save_bytes, save_file,
)
from .streams import BytesReader, BytesWriter, FileReader, FileWriter, Reader, Writer

__all__ = [
    "__version__",
    "DType", "DTYPE_TAGS", "DTYPE_SIZES",
    "METADATA_KEY", "MAX_HEADER_LENGTH", "FILE_EXTENSION",
    "to_tag", "from_tag", "to_numpy", "from_numpy",
    "CodecError", "StreamError", "FormatError", "ValidationError",
    "NotOpenError", "ReadUnderrunError", "WriteFailedError",
    "InvalidHeaderLengthError", "InvalidMetadataError", "MissingFieldError",
    "MalformedEntryError", "UnknownTypeError", "UnsupportedTypeError",
    "DuplicateKeyError", "InvalidOffsetsError",
    "EmptyTensorError", "InvalidTensorNameError", "InvalidMetadataValueError",
    "FileHeader", "TensorInfo", "LazyTensor", "TensorFile",
    "load", "load_bytes", "load_file", "save", "save_bytes", "save_file",
    "Reader", "Writer", "FileReader", "FileWriter", "BytesReader", "BytesWriter",
]
