"""Request and order signing with the account's API private key."""

from __future__ import annotations

import json
import re
import time
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct

from lighter_service.errors import ConfigurationError

AUTH_TOKEN_TTL_S = 3600

_HEX_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def normalise_private_key(raw: str) -> str:
    """Return the key as ``0x`` + 64 hex chars, or raise ConfigurationError."""
    key = raw.strip()
    if key.startswith("0x"):
        key = key[2:]
    if len(key) != 64:
        raise ConfigurationError(
            f"invalid private key length: {len(key)} (expected 64 hex characters)"
        )
    if not _HEX_RE.match(key):
        raise ConfigurationError("private key contains non-hex characters")
    return "0x" + key


def canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


class LighterSigner:
    """Holds the API key. An unset or malformed key leaves the signer unconfigured.

    Unconfigured is a normal state: the service keeps collecting data and
    the safety checks reject every trade.
    """

    def __init__(self, private_key: str | None) -> None:
        self._account = None
        self.error: str | None = None
        if not private_key:
            self.error = "private key not set"
            return
        try:
            self._account = Account.from_key(normalise_private_key(private_key))
        except ConfigurationError as exc:
            self.error = str(exc)
        except ValueError as exc:
            self.error = f"private key rejected: {exc}"

    @property
    def configured(self) -> bool:
        return self._account is not None

    @property
    def address(self) -> str | None:
        return self._account.address if self._account is not None else None

    def _require(self):
        if self._account is None:
            raise ConfigurationError(f"exchange credentials not configured ({self.error})")
        return self._account

    def sign_text(self, message: str) -> str:
        signed = self._require().sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()

    def sign_payload(self, payload: dict[str, Any]) -> str:
        """Sign the canonical JSON encoding of an order payload."""
        return self.sign_text(canonical_json(payload))

    def auth_headers(self, now_s: int | None = None) -> dict[str, str]:
        """Headers for authenticated REST reads, valid for one hour."""
        timestamp = int(now_s if now_s is not None else time.time())
        expiry = timestamp + AUTH_TOKEN_TTL_S
        message = f"Lighter Authentication\nTimestamp: {timestamp}\nExpiry: {expiry}"
        return {
            "Authorization": f"Bearer {self.sign_text(message)}",
            "X-Timestamp": str(timestamp),
            "X-Expiry": str(expiry),
            "X-Address": self.address or "",
        }
