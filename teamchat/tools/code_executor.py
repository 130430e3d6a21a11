from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import List, Optional, Tuple

from teamchat.tools.process_runner import ProcessRunner

logger = logging.getLogger(__name__)

_FILE_BLOCK = re.compile(r"```file\[(?P<path>[^\]\n]+)\][^\n]*\n(?P<content>.*?)```", re.DOTALL)


def extract_code_blocks(text: str, prefix: str, suffix: str = "```") -> List[str]:
    """Return the stripped bodies of every ``prefix ... suffix`` block in order."""
    blocks: List[str] = []
    # segment 0 precedes the first prefix and is never a block
    for segment in text.split(prefix)[1:]:
        end = segment.find(suffix)
        if end == -1:
            continue
        code = segment[:end].strip()
        if code:
            blocks.append(code)
    return blocks


def extract_file_blocks(text: str) -> List[Tuple[str, str]]:
    """Return ``(path, content)`` pairs for each ```file[path] block."""
    return [
        (match.group("path").strip(), match.group("content"))
        for match in _FILE_BLOCK.finditer(text)
    ]


class CodeBlockExecutor:
    """Extracts fenced blocks from message text and runs them one by one."""

    def __init__(
        self,
        runner: ProcessRunner,
        workdir: str | Path,
        prefix: str,
        suffix: str = "```",
        max_output: int = 500,
        label: Optional[str] = None,
    ) -> None:
        if not prefix:
            raise ValueError("prefix must not be empty")
        if max_output < 0:
            raise ValueError("max_output must be non-negative")
        self.runner = runner
        self.workdir = Path(workdir)
        self.prefix = prefix
        self.suffix = suffix
        self.max_output = max_output
        self.label = (label or prefix.strip("`") or "code").upper()

    def execute(self, text: str, timeout: Optional[float] = None) -> Optional[str]:
        """Run every block and return the truncated report.

        ``None`` means the text carries no executable content. ``timeout`` bounds
        all blocks together; each run gets whatever is left of it.
        """
        blocks = extract_code_blocks(text, self.prefix, self.suffix)
        if not blocks:
            return None

        deadline = time.monotonic() + timeout if timeout is not None else None
        lines = [f"// [{self.label}_CODE_BLOCK_EXECUTION]"]
        for index, code in enumerate(blocks):
            logger.info("Executing %s block %d (%d chars)", self.label.lower(), index, len(code))
            remaining = max(deadline - time.monotonic(), 0.0) if deadline is not None else None
            output = self.runner.run(code, self.workdir, timeout=remaining)
            lines.append(f"### Executing result for code block {index}")
            lines.append(output)
            lines.append("### End of executing result ###")

        report = "\n".join(lines) + "\n"
        # plain prefix cut; may land inside a block's output
        return report[: self.max_output]
