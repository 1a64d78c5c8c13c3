"""Helpers for presenting profile rows."""

from collections.abc import Mapping
from typing import Any


def display_name(profile: Mapping[str, Any] | None) -> str:
    if not profile:
        return "User"
    first = (profile.get("first_name") or "").strip()
    last = (profile.get("last_name") or "").strip()
    username = (profile.get("username") or "").strip()
    if first and last:
        return f"{first} {last}"
    return first or username or "User"
