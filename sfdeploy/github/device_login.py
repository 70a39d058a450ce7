"""
Device login scraping.

When the deployment workflow authenticates with ``sf org login device``,
the CLI prints a verification URL and an 8-character user code into the
job log. These helpers pull both out of the raw log text so they can be
shown to the person who triggered the run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_VERIFICATION_URL = "https://login.salesforce.com/setup/connect"

URL_PATTERN = re.compile(r"https://[^\s\"'<>]+/setup/connect[^\s\"'<>]*")

# "user_code": "ABCD1234", "Enter the code: ABCD1234", "user code ABCD-1234",
# "Enter ABCD1234 user code"
CODE_PATTERNS = [
    re.compile(r"(?i:\buser_code\b)[\s:=\"']*([A-Z0-9]{4}-?[A-Z0-9]{4})\b"),
    re.compile(r"(?i:\bcode\b)[\s:=\"']*([A-Z0-9]{4}-?[A-Z0-9]{4})\b"),
    re.compile(r"\b([A-Z0-9]{4}-?[A-Z0-9]{4})\s+(?i:user\s+code)\b"),
]


@dataclass(frozen=True)
class DeviceLogin:
    """Verification URL and user code for a pending device login."""

    verification_url: str
    user_code: str

    def instructions(self) -> str:
        return f"Open {self.verification_url} and enter the code: {self.user_code}"


def extract_user_code(text: str) -> Optional[str]:
    """Return the 8-character user code (dash removed), or None."""
    for pattern in CODE_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(1).replace("-", "")
    return None


def extract_verification_url(text: str) -> Optional[str]:
    match = URL_PATTERN.search(text or "")
    return match.group(0).rstrip(".,)") if match else None


def extract_device_login(log_text: str) -> Optional[DeviceLogin]:
    """
    Find a device login prompt in job log output.

    The log may carry GitHub's timestamp prefix on every line. A code
    without a URL falls back to the standard Salesforce verification URL.

    Returns:
        DeviceLogin, or None when no user code is present.
    """
    code = extract_user_code(log_text)
    if not code:
        return None
    url = extract_verification_url(log_text) or DEFAULT_VERIFICATION_URL
    return DeviceLogin(verification_url=url, user_code=code)
