from __future__ import annotations

"""
Connection-string parsing: validate a MongoDB URI and pick the effective database name.
"""

from dataclasses import dataclass

from pymongo.uri_parser import parse_uri


@dataclass(frozen=True)
class ParsedConnection:
    uri: str
    database: str | None
    hosts: tuple[str, ...] = ()


def parse_connection_string(connection_string: str) -> ParsedConnection:
    """
    Parse with the driver's own URI parser; raises ``pymongo.errors.InvalidURI``
    (or ``ConfigurationError``) for malformed strings. ``mongodb+srv`` URIs are
    resolved through DNS by the driver.
    """
    uri = connection_string.strip()
    parsed = parse_uri(uri)
    database = parsed.get("database") or None
    hosts = tuple(f"{host}:{port}" for host, port in parsed.get("nodelist") or ())
    return ParsedConnection(uri=uri, database=database, hosts=hosts)


def effective_database_name(parsed: ParsedConnection, fallback: str) -> str:
    """URI database when present and non-blank, otherwise ``fallback``."""
    if parsed.database and parsed.database.strip():
        return parsed.database
    return fallback
