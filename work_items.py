"""
Units of download work produced from change-feed notifications.
"""

from dataclasses import dataclass
from urllib.parse import urlparse, unquote

from errors import InvalidLocator

GS_SCHEME = "gs"


@dataclass(frozen=True)
class BlobLocator:
    bucket: str
    name: str

    @property
    def uri(self) -> str:
        return f"{GS_SCHEME}://{self.bucket}/{self.name}"


@dataclass(frozen=True)
class WorkItem:
    id: str
    locator: BlobLocator


def parse_gs_uri(value) -> BlobLocator:
    """Convert a gs://<bucket>/<object> URI into a BlobLocator.

    :param value: The result reference read from a document
    :return: BlobLocator for the referenced object
    :raises InvalidLocator: If the value is not a well-formed gs:// URI
    """
    if not isinstance(value, str):
        raise InvalidLocator(f"Result reference is not a string: {value!r}")
    parsed = urlparse(value.strip())
    if parsed.scheme != GS_SCHEME:
        raise InvalidLocator(f"Unsupported scheme in result reference: {value!r}")
    name = unquote(parsed.path.lstrip("/"))
    if not parsed.netloc or not name or name.endswith("/"):
        raise InvalidLocator(f"Result reference has no bucket or object name: {value!r}")
    return BlobLocator(bucket=parsed.netloc, name=name)
