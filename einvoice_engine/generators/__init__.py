"""
Format generators: canonical invoice -> e-invoice dialect.
"""

from .base import STRUCT_PREFIX, FormatGenerator
from .factory import GENERATORS, get_available_formats, get_engine_versions, get_generator, parse_format

__all__ = [
    "FormatGenerator",
    "GENERATORS",
    "STRUCT_PREFIX",
    "get_available_formats",
    "get_engine_versions",
    "get_generator",
    "parse_format",
]
