"""The read-only request record handed to every handler."""

import urllib.parse
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _empty_mapping() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Endpoint:
    """One side of the connection."""

    address: str
    port: str
    hostname: str = ""


@dataclass(frozen=True)
class NormalizedRequest:
    """Everything a handler needs to know about one request.

    ``path`` has no leading or trailing slash, ``method`` is lowercase and
    ``data`` is the body decoded as UTF-8 (``raw_data`` keeps the bytes).
    """

    server: Endpoint
    client: Endpoint
    ip_protocol: str
    http_version: str
    tls: bool
    method: str
    path: str
    tls_version: str = ""
    tls_cipher: str = ""
    headers: Mapping[str, str] = field(default_factory=_empty_mapping)
    cookies: Mapping[str, str] = field(default_factory=_empty_mapping)
    query: Mapping[str, str] = field(default_factory=_empty_mapping)
    data: str = ""
    raw_data: bytes = b""
    session_id: str = ""

    def to_dict(self) -> dict:
        """Return a JSON-serializable view, mostly for echo and debugging handlers."""
        return {
            "server": {
                "hostname": self.server.hostname,
                "address": self.server.address,
                "port": self.server.port,
            },
            "client": {"address": self.client.address, "port": self.client.port},
            "http": {
                "version": self.http_version,
                "tls": self.tls,
                "tlsVersion": self.tls_version,
                "tlsCipher": self.tls_cipher,
                "method": self.method,
                "headers": dict(self.headers),
                "cookies": dict(self.cookies),
                "data": self.data,
            },
            "ip": {"protocol": self.ip_protocol},
            "url": {"path": self.path, "query": dict(self.query)},
            "sessionId": self.session_id,
        }


def split_target(target: str) -> tuple[str, str]:
    """Split a request target into its raw path and raw query string.

    Origin-form targets are split by hand; ``urlsplit`` would read ``//a/b``
    as a network location.
    """
    if target.startswith("/"):
        path, _, query = target.partition("#")[0].partition("?")
        return path, query
    parsed = urllib.parse.urlsplit(target)
    return parsed.path, parsed.query


def normalize_path(raw_path: str) -> str:
    """Percent-decode a URL path and strip slashes and whitespace from both ends."""
    return urllib.parse.unquote(raw_path).strip("/ \t\r\n")


def parse_query(query: str) -> dict[str, str]:
    """Parse ``k1=v1&k2=v2`` into a mapping.

    A token without ``=`` maps the whole token to ``""``; empty tokens are
    skipped and a repeated key keeps its last value.
    """
    parsed: dict[str, str] = {}
    if not query:
        return parsed
    for token in query.split("&"):
        if not token:
            continue
        key, _, value = token.partition("=")
        parsed[urllib.parse.unquote_plus(key)] = urllib.parse.unquote_plus(value)
    return parsed


def parse_cookies(header_value: str) -> dict[str, str]:
    """Parse a ``Cookie`` header into a name to value mapping."""
    cookies: dict[str, str] = {}
    if not header_value:
        return cookies
    for item in header_value.split(";"):
        item = item.strip()
        if not item:
            continue
        name, _, value = item.partition("=")
        name = name.strip()
        if not name:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies[name] = value
    return cookies


def host_from_header(host_header: str) -> str:
    """Return the host part of a ``Host`` header value."""
    host = host_header.strip()
    if host.startswith("["):
        closing = host.find("]")
        return host[1:closing] if closing != -1 else host[1:]
    return host.rsplit(":", 1)[0] if host.count(":") == 1 else host


def ip_protocol_for(address: str) -> str:
    """Return ``ipv6`` or ``ipv4`` for a socket address string."""
    return "ipv6" if ":" in address else "ipv4"


def freeze(mapping: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))
