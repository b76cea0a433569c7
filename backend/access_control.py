# access_control.py - Password and expiry gate for opened share links
"""
The password on a share link is checked against material carried in the link
itself. This is a convenience gate, not a security boundary: whoever holds the
URL also holds the content id and can fetch the file from any gateway. There is
no rate limiting and no lockout.

Two material schemes are understood:

  * ``pbkdf2:sha256:<iterations>$<salt>$<hash>`` - werkzeug's salted hash, used for new links
  * plain base64 of the password - what older links carry
"""
import base64
import hmac
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from errors import ExpiredLink, IncorrectPassword, InvalidLink, PasswordRequired

logger = logging.getLogger(__name__)

PBKDF2_METHOD = "pbkdf2:sha256"
DEFAULT_ITERATIONS = 200_000
# Material comes from the URL, so bound the work a link can ask for
MAX_ITERATIONS = 2_000_000


def legacy_material(password: str) -> str:
    return base64.b64encode(password.encode("utf-8")).decode("ascii")


def pbkdf2_material(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    return generate_password_hash(password, method=f"{PBKDF2_METHOD}:{iterations}")


def make_verification_material(password: str, scheme: str = "pbkdf2", iterations: int = DEFAULT_ITERATIONS) -> str:
    if not isinstance(password, str) or not password:
        raise ValueError("password must be a non-empty string")
    if scheme == "legacy":
        return legacy_material(password)
    if scheme == "pbkdf2":
        return pbkdf2_material(password, iterations=iterations)
    raise ValueError(f"Unknown password scheme: {scheme}")


def _iterations(material: str) -> Optional[int]:
    method = material.split("$", 1)[0]
    try:
        return int(method[len(PBKDF2_METHOD) + 1:])
    except ValueError:
        return None


def verify_material(password, material: str) -> bool:
    """Check a submitted password against link material of either scheme"""
    if not isinstance(password, str) or not material:
        return False

    if material.startswith(PBKDF2_METHOD + ":"):
        iterations = _iterations(material)
        if iterations is None or not 0 < iterations <= MAX_ITERATIONS:
            logger.warning("Unreadable pbkdf2 verification material")
            return False
        try:
            return check_password_hash(material, password)
        except ValueError:
            logger.warning("Unreadable pbkdf2 verification material")
            return False

    # Legacy links compare the encoded form byte for byte
    return hmac.compare_digest(legacy_material(password).encode("ascii"), material.encode("utf-8"))


class AccessState(Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    UNPROTECTED_GRANTED = "granted"
    EXPIRED = "expired"


GRANTED_STATES = (AccessState.VERIFIED, AccessState.UNPROTECTED_GRANTED)


class AccessSession:
    """Access state for one viewing of a decoded share link

    Nothing is cached between sessions; every opening of a link starts a new
    session and expiry is re-checked on each access attempt.
    """

    def __init__(self, descriptor, now: Optional[datetime] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.descriptor = descriptor
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        if descriptor.is_protected and not descriptor.verification_material:
            raise InvalidLink()

        if descriptor.is_expired(now or self._clock()):
            self.state = AccessState.EXPIRED
        elif descriptor.is_protected:
            self.state = AccessState.UNVERIFIED
        else:
            self.state = AccessState.UNPROTECTED_GRANTED

    @property
    def granted(self) -> bool:
        return self.state in GRANTED_STATES

    def _refresh_expiry(self, now: Optional[datetime] = None):
        if self.state is AccessState.EXPIRED:
            raise ExpiredLink()
        if self.descriptor.is_expired(now or self._clock()):
            self.state = AccessState.EXPIRED
            raise ExpiredLink()

    def verify(self, password: str, now: Optional[datetime] = None) -> AccessState:
        self._refresh_expiry(now)
        if self.state in GRANTED_STATES:
            return self.state

        if verify_material(password, self.descriptor.verification_material):
            self.state = AccessState.VERIFIED
            logger.info("Password verified for %s", self.descriptor.content_id)
            return self.state

        logger.info("Incorrect password for %s", self.descriptor.content_id)
        raise IncorrectPassword()

    def check_access(self, now: Optional[datetime] = None) -> bool:
        """Raise unless the content may be revealed right now"""
        self._refresh_expiry(now)
        if self.state is AccessState.UNVERIFIED:
            raise PasswordRequired()
        return True
