# share_links.py - Encode and decode stateless share links
"""
A share link carries everything needed to open a shared file in its query
string; nothing is stored server-side:

    <origin>?shareView=true&file=<name>&cid=<cid>[&protected=true&hash=<material>][&expires=<epoch ms>]

Expiry is an absolute instant and is checked every time a link is decoded.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qs, quote, urlsplit

from access_control import make_verification_material
from errors import ExpiredLink, InvalidDescriptor, InvalidLink

logger = logging.getLogger(__name__)

SHARE_MARKER = "shareView"
PARAM_FILE = "file"
PARAM_CID = "cid"
PARAM_PROTECTED = "protected"
PARAM_HASH = "hash"
PARAM_EXPIRES = "expires"

# Characters left alone by a browser's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"

FILE_KINDS = {
    "Image": {"jpg", "jpeg", "png", "gif", "svg", "webp"},
    "Document": {"pdf", "doc", "docx", "txt", "rtf"},
    "Video": {"mp4", "mov", "avi", "webm"},
    "Audio": {"mp3", "wav", "ogg"},
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(instant: datetime) -> int:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return int(round(instant.timestamp() * 1000))


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def expiry_from_days(days, now: Optional[datetime] = None) -> datetime:
    """Turn a relative "expires in N days" choice into an absolute instant"""
    days = float(days)
    if days <= 0:
        raise ValueError("expiry_days must be positive")
    return (now or utcnow()) + timedelta(days=days)


@dataclass(frozen=True)
class ShareDescriptor:
    content_id: str
    display_name: str
    is_protected: bool = False
    verification_material: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    @property
    def expires_at_ms(self) -> Optional[int]:
        if self.expires_at is None:
            return None
        return to_epoch_ms(self.expires_at)


def encode_share_link(descriptor: ShareDescriptor, base_url: str) -> str:
    """Serialize a descriptor into an absolute share URL"""
    if not descriptor.content_id or not descriptor.display_name:
        raise InvalidDescriptor()
    if descriptor.is_protected != bool(descriptor.verification_material):
        raise InvalidDescriptor("Protected links need verification material, and only protected links may carry it")

    parts = [
        f"{SHARE_MARKER}=true",
        f"{PARAM_FILE}={quote(descriptor.display_name, safe=_URI_COMPONENT_SAFE)}",
        f"{PARAM_CID}={descriptor.content_id}",
    ]
    if descriptor.is_protected:
        parts.append(f"{PARAM_PROTECTED}=true")
        parts.append(f"{PARAM_HASH}={quote(descriptor.verification_material, safe='')}")
    if descriptor.expires_at is not None:
        parts.append(f"{PARAM_EXPIRES}={descriptor.expires_at_ms}")

    return f"{base_url.rstrip('/')}?{'&'.join(parts)}"


def create_share_link(content_id: str, display_name: str, config, password: Optional[str] = None,
                      expiry_days=None, now: Optional[datetime] = None):
    """Build a descriptor from the owner's share options and encode it

    Returns a `(url, descriptor)` tuple.
    """
    material = None
    if password:
        material = make_verification_material(
            password, scheme=config.password_scheme, iterations=config.pbkdf2_iterations
        )
    expires_at = expiry_from_days(expiry_days, now=now) if expiry_days else None

    descriptor = ShareDescriptor(
        content_id=(content_id or "").strip(),
        display_name=display_name or "",
        is_protected=material is not None,
        verification_material=material,
        expires_at=expires_at,
    )
    url = encode_share_link(descriptor, config.base_url)
    logger.info(
        "Share link created for %s (protected=%s, expires=%s)",
        descriptor.content_id, descriptor.is_protected, descriptor.expires_at_ms,
    )
    return url, descriptor


def _query_params(url_or_query: str):
    text = (url_or_query or "").strip()
    if "?" in text or "://" in text:
        query = urlsplit(text).query
    else:
        query = text
    return parse_qs(query, keep_blank_values=True)


def is_share_link(url_or_query: str) -> bool:
    params = _query_params(url_or_query)
    return params.get(SHARE_MARKER, [""])[0] == "true"


def decode_share_link(url_or_query: str, now: Optional[datetime] = None) -> Optional[ShareDescriptor]:
    """Parse a share URL (or bare query string) into a descriptor

    Returns None when the URL is not a share link at all. Raises InvalidLink
    when a mandatory field is missing and ExpiredLink when the expiry has
    passed at the moment of decoding.
    """
    params = _query_params(url_or_query)
    if params.get(SHARE_MARKER, [""])[0] != "true":
        return None

    def first(name):
        values = params.get(name)
        return values[0] if values else None

    cid = (first(PARAM_CID) or "").strip()
    display_name = first(PARAM_FILE) or ""
    if not cid or not display_name:
        raise InvalidLink()

    expires_at = None
    raw_expires = first(PARAM_EXPIRES)
    if raw_expires:
        try:
            expires_at = from_epoch_ms(int(raw_expires))
        except (ValueError, OverflowError, OSError):
            raise InvalidLink()

    material = first(PARAM_HASH)
    if material:
        # Older links put base64 in the URL without escaping, so '+' arrives as ' '
        material = material.replace(" ", "+")

    descriptor = ShareDescriptor(
        content_id=cid,
        display_name=display_name,
        is_protected=first(PARAM_PROTECTED) == "true",
        verification_material=material or None,
        expires_at=expires_at,
    )
    if descriptor.is_expired(now):
        logger.info("Share link for %s expired at %s", cid, descriptor.expires_at_ms)
        raise ExpiredLink()
    return descriptor


def file_kind(display_name: str) -> str:
    """Coarse file category from the name's extension, for display"""
    if "." not in (display_name or ""):
        return "File"
    ext = display_name.rsplit(".", 1)[-1].lower()
    for kind, extensions in FILE_KINDS.items():
        if ext in extensions:
            return kind
    return "File"
