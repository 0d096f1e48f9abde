"""Build manifest for itpmesh convert output."""

from __future__ import annotations

import hashlib
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

from itpmesh import __version__


def _sha256_of_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def _git_sha() -> str | None:
    """Return current git HEAD SHA, or None if unavailable."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def _file_entry(path: Path) -> dict[str, str]:
    return {"path": str(path), "sha256": _sha256_of_file(path)}


def build_manifest(
    *,
    input_path: Path,
    output_paths: list[Path],
    output_format: str,
    command_args: list[str] | None = None,
) -> dict:
    """Build a manifest dict describing a convert run.

    Should be called *after* every output file has been written.
    """
    manifest: dict = {
        "manifest_version": 1,
        "tool": {
            "name": "itpmesh",
            "version": __version__,
            "python": sys.version.split()[0],
            "git_sha": _git_sha(),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": _file_entry(input_path),
        "format": output_format,
        "outputs": [_file_entry(path) for path in output_paths],
    }

    if command_args is not None:
        manifest["command_args"] = command_args

    return manifest
