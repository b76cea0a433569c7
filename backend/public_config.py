import os
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEPLOYMENT_ENV = os.environ.get('DEPLOYMENT_ENV', 'development')
PUBLIC_CONFIG_PRODUCTION_PATH = 'public_config_production.json'
PUBLIC_CONFIG_DEVELOPMENT_PATH = 'public_config_development.json'

current_dir = os.path.dirname(os.path.abspath(__file__))
if DEPLOYMENT_ENV == 'production':
    config_filename = PUBLIC_CONFIG_PRODUCTION_PATH
else:
    config_filename = PUBLIC_CONFIG_DEVELOPMENT_PATH
public_config_path = os.path.join(current_dir, config_filename)

with open(public_config_path, 'r') as f:
    public_config = json.load(f)

DEFAULT_GATEWAYS = [
    "https://gateway.pinata.cloud/ipfs/",
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://dweb.link/ipfs/",
]
DEFAULT_PLACEHOLDER_CID = "QmZ4tDuvesekSs4qM5ZBKpXiZGun7S2CYtEZRB3DYXkjGx"

# Values copied from the example env file; treat them as unset
_PLACEHOLDER_SECRETS = {
    "your_pinata_jwt_token_here",
    "your_pinata_api_key_here",
    "your_pinata_secret_api_key_here",
}


def _env(name: str, environ) -> Optional[str]:
    value = (environ.get(name) or "").strip()
    if not value or value in _PLACEHOLDER_SECRETS:
        return None
    return value


def _gateway_base(url: str) -> str:
    """Normalise a gateway to the `https://host/ipfs/` form"""
    url = url.rstrip("/")
    if not url.endswith("/ipfs"):
        url += "/ipfs"
    return url + "/"


@dataclass
class ShareConfig:
    """Process-wide settings passed explicitly to the codec, resolver and app"""
    base_url: str = "http://localhost:5000"
    gateways: List[str] = field(default_factory=lambda: list(DEFAULT_GATEWAYS))
    placeholder_cid: str = DEFAULT_PLACEHOLDER_CID
    min_cid_length: int = 10
    password_scheme: str = "pbkdf2"
    pbkdf2_iterations: int = 200_000
    pinata_jwt: Optional[str] = None
    pinata_api_key: Optional[str] = None
    pinata_secret_api_key: Optional[str] = None
    db_path: str = "files.db"
    gateway_timeout: float = 10.0
    max_upload_mb: int = 100

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        self.gateways = [_gateway_base(g) for g in self.gateways]
        if not self.gateways:
            raise ValueError("At least one gateway must be configured")
        if self.password_scheme not in ("pbkdf2", "legacy"):
            raise ValueError(f"Unknown password scheme: {self.password_scheme}")

    @property
    def pinata_version(self) -> Optional[str]:
        if self.pinata_jwt:
            return "v3"
        if self.pinata_api_key and self.pinata_secret_api_key:
            return "v2"
        return None

    @property
    def pinata_enabled(self) -> bool:
        return self.pinata_version is not None

    @classmethod
    def from_env(cls, environ=None, config_data: Optional[Dict[str, Any]] = None) -> "ShareConfig":
        """Combine the public JSON config with secrets from the environment"""
        environ = os.environ if environ is None else environ
        data = public_config if config_data is None else config_data

        gateways = list(data.get("gateways") or DEFAULT_GATEWAYS)
        # A dedicated Pinata gateway takes the primary slot
        pinata_gateway = _env("PINATA_GATEWAY", environ)
        if pinata_gateway:
            gateways[0] = pinata_gateway

        return cls(
            base_url=_env("SHARE_BASE_URL", environ) or data.get("share_base_url", "http://localhost:5000"),
            gateways=gateways,
            placeholder_cid=data.get("placeholder_cid", DEFAULT_PLACEHOLDER_CID),
            min_cid_length=int(data.get("min_cid_length", 10)),
            password_scheme=_env("SHARE_PASSWORD_SCHEME", environ) or data.get("password_scheme", "pbkdf2"),
            pbkdf2_iterations=int(data.get("pbkdf2_iterations", 200_000)),
            pinata_jwt=_env("PINATA_JWT", environ),
            pinata_api_key=_env("PINATA_API_KEY", environ),
            pinata_secret_api_key=_env("PINATA_SECRET_API_KEY", environ),
            db_path=_env("FILES_DB_PATH", environ) or "files.db",
            gateway_timeout=float(data.get("gateway_timeout_seconds", 10)),
            max_upload_mb=int(_env("MAX_UPLOAD_SIZE_MB", environ) or 100),
        )
