"""Subprocess execution shared by the ``rails`` and ``bundle`` clients."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Mapping, Optional, Sequence

from rubykit.exceptions import CommandError
from rubykit.output import get_output


async def run_command(
    label: str,
    executable: str,
    args: Sequence[str],
    cwd: Path,
    timeout: float,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run ``executable *args`` in *cwd* and return its stdout.

    Args:
        label: Command family named in error messages, e.g. ``"rails"``.
        executable: Program to start; looked up on ``PATH``.
        args: Command-line arguments.
        cwd: Working directory.
        timeout: Seconds before the process is killed.
        env: Variables added to the inherited environment.

    Raises:
        CommandError: On a missing executable, timeout, or non-zero exit.
            For a non-zero exit the message is stderr (or stdout) and
            ``output`` holds both streams.
    """
    get_output().debug(f"Running: {executable} {' '.join(args)} (in {cwd})")
    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            *args,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **(env or {})},
        )
    except OSError as exc:
        raise CommandError(f"Failed to execute {label} command: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandError(f"Command timed out after {timeout}s") from None

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        message = (err or out).strip() or f"Command failed with exit code {proc.returncode}"
        raise CommandError(message, output=out + err)
    return out
