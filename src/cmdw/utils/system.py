"""System utility checks."""

from __future__ import annotations

import shutil
import subprocess


def check_shell(program: str) -> tuple[bool, str]:
    """Check that the shell program exists and return its version line."""
    shell_path = shutil.which(program)
    if not shell_path:
        return False, f"Shell program not found: {program}"
    try:
        result = subprocess.run(
            [shell_path, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        lines = (result.stdout.strip() or result.stderr.strip()).splitlines()
        return True, lines[0] if lines else shell_path
    except subprocess.TimeoutExpired:
        return False, f"{program} version check timed out"
    except Exception as e:
        return False, f"Error checking {program}: {e}"
