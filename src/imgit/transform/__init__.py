"""The six transform phases, in pipeline order."""

from .build import build, build_default
from .capture import capture
from .download import download
from .encode import encode
from .probe import probe
from .rewrite import rewrite

__all__ = [
    "build",
    "build_default",
    "capture",
    "download",
    "encode",
    "probe",
    "rewrite",
]
