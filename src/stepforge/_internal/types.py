"""Shared type aliases for StepForge."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Plain string-to-string map (headers, query, path params).
StringMap = dict[str, str]

# Variable context handed to the substitution engine. Read-only.
Variables = Mapping[str, str]

# Request body: scalar, list, or string-keyed map, nested arbitrarily.
Body = Any
