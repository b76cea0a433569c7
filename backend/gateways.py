# gateways.py - Build retrieval URLs for a content id across IPFS gateways
import logging
from typing import List, Optional, Tuple
from urllib.parse import urlencode

import requests

from errors import GatewayUnavailable, MalformedContentId

logger = logging.getLogger(__name__)

_FORBIDDEN_CID_CHARS = set("/?#") | {" ", "\t", "\n", "\r"}


class GatewayResolver:
    """
    Turns a content id into gateway URLs in fixed priority order.

    The order is configuration, not health: the resolver keeps no state and
    never reorders gateways after failures. Malformed ids are replaced with a
    known-good placeholder object so rendering never breaks on bad input.
    """

    def __init__(self, gateways: List[str], placeholder_cid: str, min_cid_length: int = 10,
                 timeout: float = 10.0):
        if not gateways:
            raise ValueError("At least one gateway must be configured")
        self.gateways = list(gateways)
        self.placeholder_cid = placeholder_cid
        self.min_cid_length = min_cid_length
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "GatewayResolver":
        return cls(
            gateways=config.gateways,
            placeholder_cid=config.placeholder_cid,
            min_cid_length=config.min_cid_length,
            timeout=config.gateway_timeout,
        )

    def is_well_formed(self, cid) -> bool:
        if not isinstance(cid, str) or len(cid) < self.min_cid_length:
            return False
        return not any(ch in _FORBIDDEN_CID_CHARS for ch in cid)

    def _safe_cid(self, cid) -> str:
        if self.is_well_formed(cid):
            return cid
        logger.warning("Malformed content id %r, using placeholder", cid)
        return self.placeholder_cid

    def preferred_url(self, cid) -> str:
        return f"{self.gateways[0]}{self._safe_cid(cid)}"

    def all_urls(self, cid) -> List[str]:
        safe = self._safe_cid(cid)
        return [f"{gateway}{safe}" for gateway in self.gateways]

    @staticmethod
    def _download_query(filename: Optional[str]) -> str:
        params = {"download": "true"}
        if filename:
            params["filename"] = filename
        return urlencode(params)

    def download_url(self, cid, filename: Optional[str] = None) -> str:
        """Preferred URL asking the gateway to serve the object as an attachment"""
        return f"{self.preferred_url(cid)}?{self._download_query(filename)}"

    def download_urls(self, cid, filename: Optional[str] = None) -> List[str]:
        query = self._download_query(filename)
        return [f"{url}?{query}" for url in self.all_urls(cid)]

    def fetch_with_failover(self, cid, session: Optional[requests.Session] = None,
                            timeout: Optional[float] = None) -> Tuple[str, requests.Response]:
        """Fetch the object from the first gateway that answers with 2xx

        Gateways are tried one after another in priority order.
        """
        if not self.is_well_formed(cid):
            raise MalformedContentId(cid)

        http = session or requests
        failures = []
        for url in self.all_urls(cid):
            try:
                logger.info(f"Fetching {cid} from {url}")
                response = http.get(url, timeout=timeout or self.timeout)
                response.raise_for_status()
                return url, response
            except requests.exceptions.RequestException as e:
                logger.warning(f"Gateway failed for {cid}: {url}: {e}")
                failures.append((url, str(e)))

        raise GatewayUnavailable(cid, failures)
