from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Runs a command text through an interpreter and captures its stdout.

    Failures are reported as text, never raised, so a broken script shows up in
    the conversation instead of ending it.
    """

    def __init__(
        self,
        argv: Sequence[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        if not argv:
            raise ValueError("argv must name an interpreter")
        self.argv: List[str] = list(argv)
        self.timeout = timeout
        self.env = env

    def run(self, command: str, workdir: str | Path, timeout: Optional[float] = None) -> str:
        """Run ``command``; ``timeout`` can only tighten the runner's own limit."""
        limit = self.timeout
        if timeout is not None:
            limit = timeout if limit is None else min(limit, timeout)
        logger.debug("Running %s in %s", self.argv[0], workdir)
        try:
            completed = subprocess.run(
                [*self.argv, command],
                cwd=str(workdir),
                capture_output=True,
                text=True,
                timeout=limit,
                env=self.env,
            )
        except subprocess.TimeoutExpired:
            return f"Error: command timed out after {limit} seconds"
        except OSError as exc:
            return f"Error: failed to start {self.argv[0]}: {exc}"

        output = completed.stdout
        if completed.returncode != 0:
            logger.info("%s exited with status %s", self.argv[0], completed.returncode)
            output = f"{output}{completed.stderr}Exit code: {completed.returncode}"
        return output


def python_runner(timeout: Optional[float] = None) -> ProcessRunner:
    return ProcessRunner([sys.executable, "-c"], timeout=timeout)
