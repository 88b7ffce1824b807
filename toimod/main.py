"""Stable import location for the engine class and the command line entry points.

The implementation lives in `core.py`; this module keeps `from toimod.main
import toimod` working for scripts written against the flat layout.
"""

from .core import (
    CipherKeys,
    CorruptArtifactError,
    EditorError,
    EmptyKeyError,
    InvalidJsonError,
    MalformedEncodingError,
    MissingArtifactError,
    MissingMetadataError,
    SaveMetadataEntry,
    ToimodError,
    cli,
    main,
    toimod,
)

__all__ = [
    "toimod",
    "cli",
    "main",
    "CipherKeys",
    "SaveMetadataEntry",
    "ToimodError",
    "EmptyKeyError",
    "MalformedEncodingError",
    "MissingArtifactError",
    "MissingMetadataError",
    "CorruptArtifactError",
    "InvalidJsonError",
    "EditorError",
]
