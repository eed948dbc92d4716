"""Centralized JSON serialization utilities.

Pre-created partial functions for common JSON serialization patterns.
Non-ASCII text (Japanese titles, fallback strings) is written as-is.
"""

from __future__ import annotations

import json

from collections.abc import Callable
from functools import partial

# Compact JSON serialization (no spaces) for storage values.
# Example: json_compact({"key": "value"}) -> '{"key":"value"}'
json_compact: Callable[..., str] = partial(json.dumps, separators=(",", ":"), ensure_ascii=False, default=str)

# Pretty-printed JSON with 2-space indentation.
# Use for export files and other human-readable output.
json_pretty: Callable[..., str] = partial(json.dumps, indent=2, ensure_ascii=False, default=str)
