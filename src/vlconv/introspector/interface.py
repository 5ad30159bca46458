"""The probe seam between classification and ffprobe."""

from pathlib import Path
from typing import Protocol

from vlconv.conversion.models import MediaProbe


class MediaIntrospectionError(Exception):
    """A file's container metadata could not be read."""


class MediaIntrospector(Protocol):
    """Anything that can sample a file's container and codecs.

    Header reads only; a probe never decodes frames, so classifying a
    library on a network share stays quick. Tests substitute an in-memory
    implementation.
    """

    def probe(self, path: Path) -> MediaProbe:
        """Return the sampled metadata, or raise MediaIntrospectionError."""
        ...
