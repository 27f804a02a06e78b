"""
Parsing and validation of KILT DIDs and key URIs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from didanchor.common.exceptions import InvalidIdentifier, LightDidNotAllowed

DID_PATTERN = re.compile(
    r"^did:(?P<method>kilt):"
    r"(?:(?P<light>light:[a-zA-Z0-9:]+)|(?P<full>4[a-zA-Z0-9]{47}))"
    r"(?:#(?P<fragment>[a-zA-Z0-9]+))?$"
)
LIGHT_MARKER = ":light:"


@dataclass(frozen=True)
class Did:
    """A parsed DID, optionally carrying a key fragment."""

    method: str
    identifier: str
    light: bool
    fragment: str | None = None

    @property
    def uri(self) -> str:
        """The DID without its fragment."""
        return f"did:{self.method}:{self.identifier}"

    @property
    def key_uri(self) -> str | None:
        if self.fragment is None:
            return None
        return f"{self.uri}#{self.fragment}"

    @property
    def address(self) -> str:
        """The ss58 account address backing a full DID."""
        if self.light:
            raise LightDidNotAllowed(self.uri)
        return self.identifier

    def __str__(self) -> str:
        return self.key_uri or self.uri


def parse_did(value: str) -> Did:
    """Parse a DID or key URI, raising InvalidIdentifier on bad input."""
    if not isinstance(value, str):
        msg = "DID must be a string"
        raise InvalidIdentifier(msg)
    match = DID_PATTERN.match(value.strip())
    if match is None:
        msg = f"malformed DID: {value}"
        raise InvalidIdentifier(msg)
    light = match.group("light")
    return Did(
        method=match.group("method"),
        identifier=light if light else match.group("full"),
        light=light is not None,
        fragment=match.group("fragment"),
    )


def is_light_did(value: str) -> bool:
    return LIGHT_MARKER in value


def require_full_did(value: str) -> Did:
    """Parse a DID and reject light DIDs."""
    # Checked before parsing so light DIDs outside the strict grammar are
    # still reported as light.
    if is_light_did(value):
        raise LightDidNotAllowed(value)
    return parse_did(value)
