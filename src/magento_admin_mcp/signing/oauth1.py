"""OAuth 1.0 HMAC-SHA256 request signing (RFC 5849 section 3.4.1).

Only the method, base URL and query parameters are signed. Request bodies
are never part of the signature base string, which is what the Magento
verifier expects.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from urllib.parse import quote, unquote

SIGNATURE_METHOD = "HMAC-SHA256"
OAUTH_VERSION = "1.0"


@dataclass(frozen=True)
class OAuthCredentials:
    """Immutable integration credential tuple. Memory only."""

    consumer_key: str
    consumer_secret: str
    token: str
    token_secret: str

    def __repr__(self) -> str:
        return f"OAuthCredentials(consumer_key={self.consumer_key[:4]}***, ...)"


def rfc3986_encode(value: str) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set.

    ``quote`` with an empty safe set already escapes ``! ' ( ) *`` and emits
    upper-case hex.
    """
    return quote(value, safe="")


def normalize_parameters(params: Mapping[str, str]) -> str:
    encoded = sorted((rfc3986_encode(k), rfc3986_encode(v)) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in encoded)


def build_signature_base_string(method: str, base_url: str, params: Mapping[str, str]) -> str:
    return "&".join(
        (
            method.upper(),
            rfc3986_encode(base_url),
            rfc3986_encode(normalize_parameters(params)),
        )
    )


def compute_signature(base_string: str, credentials: OAuthCredentials) -> str:
    key = f"{rfc3986_encode(credentials.consumer_secret)}&{rfc3986_encode(credentials.token_secret)}"
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def _default_nonce() -> str:
    return secrets.token_hex(32)


def _default_clock() -> int:
    return int(time.time())


class OAuth1Signer:
    """Build ``Authorization: OAuth ...`` header values.

    ``nonce_factory`` and ``clock`` are injectable so that tests can pin the
    two fields that otherwise vary between calls.
    """

    def __init__(
        self,
        nonce_factory: Callable[[], str] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._nonce_factory = nonce_factory or _default_nonce
        self._clock = clock or _default_clock

    def protocol_parameters(self, credentials: OAuthCredentials) -> dict[str, str]:
        return {
            "oauth_consumer_key": credentials.consumer_key,
            "oauth_nonce": self._nonce_factory(),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": str(self._clock()),
            "oauth_token": credentials.token,
            "oauth_version": OAUTH_VERSION,
        }

    def sign(
        self,
        method: str,
        url: str,
        query: Mapping[str, str] | None,
        credentials: OAuthCredentials,
    ) -> str:
        oauth_params = self.protocol_parameters(credentials)
        all_params = dict(oauth_params)
        if query:
            all_params.update(query)

        base_string = build_signature_base_string(method, url, all_params)
        oauth_params["oauth_signature"] = compute_signature(base_string, credentials)

        return "OAuth " + ", ".join(
            f'{key}="{rfc3986_encode(value)}"' for key, value in oauth_params.items()
        )


def parse_authorization_header(header: str) -> dict[str, str]:
    """Split an ``OAuth k="v", ...`` header back into decoded parameters."""
    if not header.startswith("OAuth "):
        raise ValueError("Not an OAuth authorization header")
    params: dict[str, str] = {}
    for part in header[len("OAuth "):].split(", "):
        key, _, raw = part.partition("=")
        params[key] = unquote(raw.strip('"'))
    return params
