"""Small string and JSON helpers."""

from __future__ import annotations

import json
from typing import Any, Mapping

_INDENT = "  "


def convert_labels_to_string(labels: Mapping[str, str]) -> str:
    """Join a label mapping into the form ``a=b;c=d``."""
    return ";".join(f"{key}={value}" for key, value in labels.items())


def convert_string_to_labels(labels_str: str) -> dict[str, str]:
    """Parse ``a=b;c=d`` into ``{"a": "b", "c": "d"}``.

    A string holding an odd number of ``;``-separated parts yields an empty
    mapping, and parts that are not exactly ``key=value`` are skipped.
    """
    labels: dict[str, str] = {}
    parts = labels_str.split(";")
    if len(parts) % 2 != 0:
        return labels
    for part in parts:
        key_value = part.split("=")
        if len(key_value) != 2:
            continue
        key, value = key_value
        labels[key] = value
    return labels


def pretty_json(data: Any) -> str:
    """Serialise ``data`` as indented JSON followed by a newline."""
    return json.dumps(data, indent=_INDENT, ensure_ascii=False) + "\n"