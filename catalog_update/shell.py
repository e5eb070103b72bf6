"""Subprocess seams for catalog-update.

Every external command the tool runs (git, the gh CLI, the package
manager's lockfile refresh) goes through one of these functions, so tests
can patch a single name per tool. ``step`` and ``fatal`` format the
terminal output of a run.
"""

from __future__ import annotations

import subprocess
import sys
from typing import NoReturn


def git(*args: str, check: bool = True) -> str:
    """Run ``git <args>`` in the current repository.

    Args:
        *args: git subcommand and its arguments, e.g. ``"push", "--force"``.
        check: Raise CalledProcessError on a non-zero exit. Pass False for
            best-effort commands such as checking the default branch out
            after a failed group.

    Returns:
        The command's stdout without surrounding whitespace.
    """
    result = subprocess.run(["git", *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


def gh(*args: str, check: bool = True) -> str:
    """Run ``gh <args>`` and return its stripped stdout.

    Used for listing, creating, editing and closing pull requests. stderr
    is captured so callers can report why gh refused.
    """
    result = subprocess.run(["gh", *args], capture_output=True, text=True, check=check)
    return result.stdout.strip()


def run(*args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
    """Run a package manager command with its output left on the terminal.

    Lockfile refreshes can take a while, so their progress is shown as it
    happens instead of being captured.
    """
    return subprocess.run(args, check=check)


def step(msg: str) -> None:
    """Print the header that opens a phase of the run."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> NoReturn:
    """Report a run-stopping problem on stderr and exit with status 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
