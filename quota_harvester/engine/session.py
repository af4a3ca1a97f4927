"""Serialized authentication state handed to the harvester by an operator."""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..errors import InvalidSession

# Cookie attributes understood by Playwright's ``BrowserContext.add_cookies``
_PLAYWRIGHT_KEYS = ("name", "value", "url", "domain", "path", "expires", "httpOnly", "secure", "sameSite")
_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None"}


def _normalise_cookie(raw: Any, index: int) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise InvalidSession(f"Cookie #{index} is not an object")
    name = raw.get("name")
    value = raw.get("value")
    if not isinstance(name, str) or not name:
        raise InvalidSession(f"Cookie #{index} has no name")
    if value is None:
        raise InvalidSession(f"Cookie {name!r} has no value")
    if not raw.get("domain") and not raw.get("url"):
        raise InvalidSession(f"Cookie {name!r} needs a domain or url")

    cookie: dict[str, Any] = {"name": name, "value": str(value)}
    if raw.get("url"):
        cookie["url"] = str(raw["url"])
    else:
        cookie["domain"] = str(raw["domain"])
        cookie["path"] = str(raw.get("path") or "/")
    expires = raw.get("expires")
    # Browser exports use -1 for session cookies
    if isinstance(expires, (int, float)) and expires > 0:
        cookie["expires"] = float(expires)
    for flag in ("httpOnly", "secure"):
        if flag in raw:
            cookie[flag] = bool(raw[flag])
    same_site = raw.get("sameSite")
    if isinstance(same_site, str) and same_site.lower() in _SAME_SITE:
        cookie["sameSite"] = _SAME_SITE[same_site.lower()]
    return cookie


@dataclass(frozen=True, slots=True)
class SessionHandle:
    """Opaque, read-only bundle of credential tokens.

    There is no expiry field: whether a session still works is only learned
    by observing login redirects during fetches.
    """

    cookies: tuple[dict[str, Any], ...] = ()

    def __len__(self) -> int:
        return len(self.cookies)

    @property
    def empty(self) -> bool:
        return not self.cookies

    @classmethod
    def from_cookies(cls, cookies: Iterable[Any]) -> "SessionHandle":
        """Validate every cookie up front so the bundle is all-or-nothing."""

        if isinstance(cookies, (str, bytes, Mapping)):
            raise InvalidSession("Session payload must be a list of cookie objects")
        return cls(tuple(_normalise_cookie(raw, index) for index, raw in enumerate(cookies)))

    @classmethod
    def decode(cls, encoded: str | None) -> "SessionHandle":
        """Decode the base64 JSON string produced by :meth:`encode`."""

        if encoded is None or not encoded.strip():
            raise InvalidSession("Session data is empty")
        # wrapped output from `base64` carries line breaks
        compact = "".join(encoded.split())
        try:
            text = base64.b64decode(compact, validate=True).decode("utf-8")
            payload = json.loads(text)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise InvalidSession(f"Failed to parse session data: {exc}") from exc
        if not isinstance(payload, list):
            raise InvalidSession("Session payload must be a list of cookie objects")
        return cls.from_cookies(payload)

    @classmethod
    def from_env(cls, env_var: str, environ: Mapping[str, str] | None = None) -> "SessionHandle":
        source = os.environ if environ is None else environ
        encoded = source.get(env_var)
        if encoded is None:
            raise InvalidSession(f"{env_var} environment variable not found")
        return cls.decode(encoded)

    @classmethod
    def from_file(cls, path: Path) -> "SessionHandle":
        """Load a plain JSON cookie export (e.g. saved after a manual login)."""

        if not path.exists():
            raise InvalidSession(f"Cookie file not found: {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise InvalidSession(f"Cookie file is not valid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise InvalidSession("Cookie file must contain a list of cookie objects")
        return cls.from_cookies(payload)

    def encode(self) -> str:
        payload = json.dumps(list(self.cookies), ensure_ascii=False)
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

    def as_playwright_cookies(self) -> list[dict[str, Any]]:
        return [{key: cookie[key] for key in _PLAYWRIGHT_KEYS if key in cookie} for cookie in self.cookies]


__all__ = ["SessionHandle"]
