"""Helpers for working with `group[:streamPrefix]` source references."""

from __future__ import annotations

from typing import List, Optional, Tuple

from cwlogs.core.errors import InvalidSourceReference
from cwlogs.core.models import SourceRef

REF_SEPARATOR = ","
PREFIX_SEPARATOR = ":"


def split_source_ref(token: str) -> Tuple[str, Optional[str]]:
    """Split one token into (name, prefix) on the first separator."""

    name, _, prefix = token.partition(PREFIX_SEPARATOR)
    name = name.strip()
    prefix = prefix.strip()
    return name, prefix or None


def build_source_ref(token: str) -> SourceRef:
    name, prefix = split_source_ref(token)
    if not name:
        raise InvalidSourceReference(f"Invalid group '{token}': group name cannot be empty")
    return SourceRef(name=name, substream_prefix=prefix)


def parse_source_refs(raw_value: str) -> List[SourceRef]:
    """Parse a comma-separated list of references, keeping order and duplicates.

    Empty tokens are dropped. An input with no usable token at all is
    rejected, since there would be nothing to tail.
    """

    tokens = [token.strip() for token in raw_value.split(REF_SEPARATOR)]
    refs = [build_source_ref(token) for token in tokens if token]
    if not refs:
        raise InvalidSourceReference(f"Invalid group '{raw_value}': group name cannot be empty")
    return refs


def format_source_ref(ref: SourceRef) -> str:
    if ref.substream_prefix is None:
        return ref.name
    return f"{ref.name}{PREFIX_SEPARATOR}{ref.substream_prefix}"
