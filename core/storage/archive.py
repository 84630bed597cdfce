"""Message archive for inbound payloads and generated documents.

Every handler invocation archives what it received and what it produced
under a common prefix so a message can be audited and replayed later:

    topic={topic}/year=YYYY/month=MM/day=DD/mid={message_id}/{name}

The archive is file-system backed. Each artifact gets a ``.meta.json``
sidecar holding its content type, hash and tags.
"""

import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from core.models.refs import ArchiveReference
from core.observability.logging import get_correlation_context

logger = logging.getLogger(__name__)


MAX_TAGS = 10
TAG_PREFIX_BLACKLIST = ("az.", "component", "peer.", "message_bus.", "kind")
_TAG_KEY = re.compile(r"^[a-zA-Z0-9 +\-.:=_/]{1,128}$")
_TAG_VALUE = re.compile(r"^[a-zA-Z0-9 +\-.:=_/]{0,256}$")

CONTENT_TYPES = {
    ".json": "application/json",
    ".xml": "application/xml",
}


class ArchiveError(Exception):
    """Raised when an artifact cannot be written to the archive."""

    def __init__(self, message: str, blob_name: Optional[str] = None):
        super().__init__(message)
        self.blob_name = blob_name


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def _to_bytes(content: Any) -> bytes:
    """Serialize an artifact: text as-is, everything else as compact JSON."""
    if isinstance(content, bytes):
        return content
    if isinstance(content, str):
        return content.encode("utf-8")
    if hasattr(content, "model_dump"):
        content = content.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        return json.dumps(content, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ArchiveError(f"Error converting message to string: {e}") from e


def blob_prefix(topic: str, message_id: str, date: Optional[datetime] = None) -> str:
    """Prefix grouping all artifacts of one invocation (dates in UTC)."""
    date = (date or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return (
        f"topic={topic}"
        f"/year={date.year}"
        f"/month={date.month:02d}"
        f"/day={date.day:02d}"
        f"/mid={message_id}"
    )


def blob_tags(attributes: Dict[str, Any]) -> Dict[str, str]:
    """Filter correlation attributes down to valid index tags.

    Invalid keys or values are dropped with a warning, as are keys starting
    with a blacklisted prefix. At most ten tags are kept.
    """
    tags: Dict[str, str] = {}
    for key, value in attributes.items():
        value = "" if value is None else str(value)
        if not _TAG_KEY.match(key):
            logger.warning(f"Invalid tag key: {key}")
            continue
        if not _TAG_VALUE.match(value):
            logger.warning(f"Invalid tag value: {value}")
            continue
        if key.startswith(TAG_PREFIX_BLACKLIST):
            continue
        if len(tags) < MAX_TAGS:
            tags[key] = value
        else:
            logger.warning(f"Exceeded maximum of {MAX_TAGS} tags allowed, dropping '{key}: {value}'")
    return tags


class MessageArchive:
    """Archive handle for a single handler invocation.

    Keeps the ordered list of references it produced.
    """

    def __init__(self, base_path: Path, prefix: str, browser_base_url: Optional[str] = None):
        self.base_path = base_path
        self.prefix = prefix
        self.browser_base_url = browser_base_url
        self.references: List[ArchiveReference] = []

    def get_blob_prefix(self) -> str:
        return f"{self.prefix}/"

    def upload(self, content: Any, name: str, tags: Optional[Dict[str, Any]] = None) -> str:
        """Store an artifact under the invocation prefix.

        Args:
            content: Text, bytes, a dict or a pydantic model
            name: File name, the extension decides the content type
            tags: Tag attributes, defaults to the current correlation context

        Returns:
            Full name of the stored blob, i.e. ``{prefix}/{name}``

        Raises:
            ArchiveError: If the artifact cannot be serialized or written
        """
        blob_name = f"{self.prefix}/{name}"
        data = _to_bytes(content)
        content_type = CONTENT_TYPES.get(Path(name).suffix.lower())
        attributes = tags if tags is not None else get_correlation_context().to_dict()

        ref = ArchiveReference(
            blob_name=blob_name,
            storage_uri=str((self.base_path / blob_name).absolute()),
            content_hash=_compute_sha256(data),
            content_type=content_type,
            size_bytes=len(data),
            tags=blob_tags(attributes),
        )

        path = Path(ref.storage_uri)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            meta_path = path.with_name(path.name + ".meta.json")
            meta_path.write_text(ref.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise ArchiveError(f"Failed to archive {blob_name}: {e}", blob_name) from e

        self.references.append(ref)
        logger.debug(f"Archived {blob_name} ({ref.size_bytes} bytes)")
        return blob_name

    def browser_link(self, blob_name: str) -> str:
        """Link for viewing an archived artifact."""
        if self.browser_base_url:
            return f"{self.browser_base_url.rstrip('/')}/{quote(blob_name, safe='')}"
        return (self.base_path / blob_name).absolute().as_uri()

    def read(self, blob_name: str) -> bytes:
        """Read an archived artifact back."""
        path = self.base_path / blob_name
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found: {blob_name}")
        return path.read_bytes()


class ArchiveStore:
    """Archive with a configurable base path.

    Hands out a MessageArchive per invocation.
    """

    def __init__(self, base_path: Union[str, Path], browser_base_url: Optional[str] = None):
        """Initialize archive store.

        Args:
            base_path: Base directory for all archived messages
            browser_base_url: Optional URL prefix for browser links
        """
        self.base_path = Path(base_path)
        self.browser_base_url = browser_base_url

    def open(self, topic: str, message_id: str, date: Optional[datetime] = None) -> MessageArchive:
        """Archive handle grouping the artifacts of one message."""
        prefix = blob_prefix(topic, message_id, date)
        logger.debug(f"Archiving payloads under {prefix}")
        return MessageArchive(self.base_path, prefix, self.browser_base_url)
