"""
GitHub credentials.

Reads the GitHub token from the environment or a ``.env`` file, and hands
it to a git credential helper so that ``git push`` works without prompts.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional

from dotenv import dotenv_values
from loguru import logger

PLACEHOLDER_TOKEN = "your_github_token_here"


class CredentialsError(Exception):
    """Raised when the GitHub token is missing or cannot be stored."""


def load_github_token(
    env_file: str | Path = ".env",
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Return GITHUB_TOKEN from the environment, falling back to ``env_file``.

    Raises:
        CredentialsError: If no real token is configured.
    """
    environ = os.environ if environ is None else environ
    token = environ.get("GITHUB_TOKEN", "")

    env_path = Path(env_file)
    if not token and env_path.is_file():
        token = dotenv_values(env_path).get("GITHUB_TOKEN") or ""
        logger.debug(f"Read GITHUB_TOKEN from {env_path}")

    if not token and not env_path.is_file():
        raise CredentialsError(
            f"{env_path} file not found and GITHUB_TOKEN is not set. "
            f"Copy .env.example to .env and add your GitHub token."
        )
    if not token or token == PLACEHOLDER_TOKEN:
        raise CredentialsError(
            f"GITHUB_TOKEN not set in {env_path}. "
            f"Edit it and add your GitHub Personal Access Token."
        )
    return token


def store_git_credentials(
    token: str,
    username: str,
    host: str = "github.com",
    helper: str = "osxkeychain",
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> None:
    """
    Store the token through ``git credential-<helper> store``.

    Raises:
        CredentialsError: If the helper is missing or rejects the input.
    """
    payload = f"protocol=https\nhost={host}\nusername={username}\npassword={token}\n"
    command = ["git", f"credential-{helper}", "store"]
    logger.debug(f"Command: {' '.join(command)}")

    try:
        completed = runner(command, input=payload, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise CredentialsError("git is not installed") from e

    if completed.returncode != 0:
        raise CredentialsError(
            f"git credential-{helper} failed: {(completed.stderr or '').strip()}"
        )
    logger.success("GitHub credentials stored successfully!")
