# errors.py - Error types for share links, gateway resolution and pinning
from typing import List, Optional, Tuple


class ShareError(Exception):
    """Base class for share-link errors; `message` is safe to show to users"""
    message = "Share link error"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)


class InvalidDescriptor(ShareError):
    """A share link was requested without a content id or file name"""
    message = "A share link needs both a content id and a file name"


class InvalidLink(ShareError):
    message = "Invalid share link"


class ExpiredLink(ShareError):
    message = "This share link has expired"


class IncorrectPassword(ShareError):
    message = "Incorrect password"


class PasswordRequired(ShareError):
    message = "This file is password protected"


class MalformedContentId(ShareError):
    message = "Malformed content id"

    def __init__(self, cid, message: Optional[str] = None):
        self.cid = cid
        super().__init__(message)


class GatewayUnavailable(Exception):
    """Every configured gateway failed to return the object"""

    def __init__(self, cid: str, failures: List[Tuple[str, str]]):
        self.cid = cid
        self.failures = failures
        detail = "; ".join(f"{url}: {reason}" for url, reason in failures)
        super().__init__(f"All gateways failed for {cid}: {detail}")


class PinataError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
