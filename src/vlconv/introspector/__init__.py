"""Media introspection: container and codec sampling via ffprobe."""

from vlconv.introspector.ffprobe import FFprobeIntrospector
from vlconv.introspector.interface import MediaIntrospectionError, MediaIntrospector
from vlconv.introspector.parsers import parse_duration, parse_ffprobe_output

__all__ = [
    "FFprobeIntrospector",
    "MediaIntrospectionError",
    "MediaIntrospector",
    "parse_duration",
    "parse_ffprobe_output",
]
