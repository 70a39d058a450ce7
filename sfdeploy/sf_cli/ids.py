"""Salesforce record ID and package name helpers."""

from __future__ import annotations

import re

PACKAGE_ID_PATTERN = re.compile(r"^(04t|0Ho)[0-9A-Za-z]{15}$")


def looks_like_package_id(value: str) -> bool:
    """
    True for package (0Ho...) and subscriber package version (04t...) IDs.

    Only 18-character IDs are recognised.
    """
    return bool(PACKAGE_ID_PATTERN.match(value or ""))


def package_api_name(name: str) -> str:
    """Convert a display name to an API-safe name ("My Pkg!" -> "My_Pkg_")."""
    return re.sub(r"_+", "_", re.sub(r"[^a-zA-Z0-9_]", "_", name))
