# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Document contexts, their registry, and connection-string resolution.
"""

from .base import (
    CollectionSpec,
    ContextHandle,
    DocumentContext,
    IndexSpec,
    connection_string_name,
    connection_string_name_of,
)
from .registry import ContextRegistry
from .resolver import ConnectionResolver, StaticConnectionResolver, is_blank
from .uri import ParsedConnection, effective_database_name, parse_connection_string

__all__ = [
    # base
    "CollectionSpec",
    "ContextHandle",
    "DocumentContext",
    "IndexSpec",
    "connection_string_name",
    "connection_string_name_of",
    # registry
    "ContextRegistry",
    # resolver
    "ConnectionResolver",
    "StaticConnectionResolver",
    "is_blank",
    # uri
    "ParsedConnection",
    "effective_database_name",
    "parse_connection_string",
]
