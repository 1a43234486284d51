"""
Bearer-token authentication for the users endpoints.

Tokens are JSON Web Tokens of the form ``header.payload.signature``, each
part base64url encoded without padding. Parsing checks the structure only.
Whether the signature is checked depends on the configured verifier:

* ``UnverifiedTokenVerifier`` (``AUTH_MODE=unverified``, the default)
  accepts any well-formed token, signed or not. This is INSECURE: anyone can
  forge a token. It exists to reproduce the demo configuration of the
  service and is logged loudly at startup.
* ``HmacTokenVerifier`` (``AUTH_MODE=hs256``) checks the HMAC-SHA256
  signature against ``JWT_SECRET`` and rejects expired tokens.

Endpoints depend on ``authenticate``. Tests swap the verifier by overriding
``get_token_verifier`` in ``app.dependency_overrides``.
"""

import base64
import binascii
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from errors import AuthenticationError

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]*$")


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


@dataclass(frozen=True)
class DecodedToken:
    header: Dict[str, Any]
    claims: Dict[str, Any]
    signing_input: bytes
    signature: bytes


def _decode_json_segment(segment: str, name: str) -> Dict[str, Any]:
    if not segment:
        raise AuthenticationError(f"Malformed token: empty {name}.")
    try:
        value = json.loads(_b64_url_decode(segment).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise AuthenticationError(f"Malformed token: {name} is not valid JSON.")
    if not isinstance(value, dict):
        raise AuthenticationError(f"Malformed token: {name} is not a JSON object.")
    return value


def parse_token(token: str) -> DecodedToken:
    """Split and decode a JWT without checking its signature.

    The signature segment may be empty (unsigned token).
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthenticationError("Malformed token: expected three segments.")
    if not all(_SEGMENT_RE.match(part) for part in parts):
        raise AuthenticationError("Malformed token: invalid base64url characters.")
    header_b64, payload_b64, signature_b64 = parts
    header = _decode_json_segment(header_b64, "header")
    claims = _decode_json_segment(payload_b64, "payload")
    try:
        signature = _b64_url_decode(signature_b64)
    except binascii.Error:
        raise AuthenticationError("Malformed token: invalid signature encoding.")
    return DecodedToken(
        header=header,
        claims=claims,
        signing_input=f"{header_b64}.{payload_b64}".encode("utf-8"),
        signature=signature,
    )


def encode_token(claims: Dict[str, Any], secret: str) -> str:
    """Create an HS256-signed token carrying ``claims``."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    return f"{header_b64}.{payload_b64}.{_b64_url_encode(_sign(signing_input, secret))}"


class TokenVerifier:
    """Decides whether a structurally valid token is accepted."""

    name = "abstract"

    def verify(self, token: DecodedToken) -> Dict[str, Any]:
        """Return the token claims, or raise ``AuthenticationError``."""
        raise NotImplementedError


class UnverifiedTokenVerifier(TokenVerifier):
    """Accepts every well-formed token. No signature, issuer, audience or
    expiry check. Insecure; for demos and local testing only."""

    name = "unverified"

    def verify(self, token: DecodedToken) -> Dict[str, Any]:
        return token.claims


class HmacTokenVerifier(TokenVerifier):
    name = "hs256"

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("HS256 verification requires a non-empty secret")
        self._secret = secret

    def verify(self, token: DecodedToken) -> Dict[str, Any]:
        if token.header.get("alg") != "HS256":
            raise AuthenticationError("Unsupported token algorithm.")
        expected = _sign(token.signing_input, self._secret)
        # Constant-time comparison
        if not hmac.compare_digest(expected, token.signature):
            raise AuthenticationError("Invalid token signature.")
        exp = token.claims.get("exp")
        if exp is not None:
            try:
                expired = float(exp) < time.time()
            except (TypeError, ValueError, OverflowError):
                raise AuthenticationError("Invalid token expiry.")
            if expired:
                raise AuthenticationError("Token has expired.")
        return token.claims


def build_verifier(mode: str, secret: str = "") -> TokenVerifier:
    mode = (mode or "").strip().lower()
    if mode == UnverifiedTokenVerifier.name:
        return UnverifiedTokenVerifier()
    if mode == HmacTokenVerifier.name:
        return HmacTokenVerifier(secret)
    raise ValueError(f"Unknown AUTH_MODE: {mode!r}")


@lru_cache()
def get_token_verifier() -> TokenVerifier:
    return build_verifier(settings.auth_mode, settings.jwt_secret)


bearer_scheme = HTTPBearer(auto_error=False)


def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Dict[str, Any]:
    """Dependency returning the claims of the request's bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated.")
    return verifier.verify(parse_token(credentials.credentials))
