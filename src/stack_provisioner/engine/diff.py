"""Desired-state comparison for file content.

Pure functions only: given current and desired text, decide whether a
write is needed and describe it. Steps use these before touching the
target so an unchanged file is never rewritten.
"""

import difflib
import re
from dataclasses import dataclass

BLOCK_TAG = "stack-provisioner"


@dataclass(frozen=True)
class FileChange:
    """Comparison of one file's current and desired content."""

    path: str
    current: str | None
    desired: str

    @property
    def exists(self) -> bool:
        return self.current is not None

    @property
    def changed(self) -> bool:
        return self.current != self.desired

    def unified_diff(self, context: int = 3) -> str:
        """Render a unified diff (empty when nothing changes)."""
        if not self.changed:
            return ""
        before = (self.current or "").splitlines(keepends=True)
        after = self.desired.splitlines(keepends=True)
        lines = difflib.unified_diff(
            before,
            after,
            fromfile=self.path if self.exists else "/dev/null",
            tofile=self.path,
            n=context,
        )
        text = "".join(line if line.endswith("\n") else line + "\n" for line in lines)
        # Bytes read with surrogateescape are shown as U+FFFD
        return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def compute_change(path: str, current: str | None, desired: str) -> FileChange:
    """Compare ``current`` (None if absent) against ``desired`` content."""
    return FileChange(path=path, current=current, desired=desired)


def block_markers(name: str) -> tuple[str, str]:
    return f"# BEGIN {BLOCK_TAG} {name}", f"# END {BLOCK_TAG} {name}"


def render_block(name: str, body: str) -> str:
    """Wrap ``body`` in begin/end markers."""
    begin, end = block_markers(name)
    body = body if body.endswith("\n") else body + "\n"
    return f"{begin}\n{body}{end}\n"


def apply_block(current: str | None, name: str, body: str) -> str:
    """Return ``current`` with the managed block ``name`` set to ``body``.

    An existing block is replaced in place; otherwise the block is appended
    after a blank separator line. Text outside the markers is preserved.
    """
    block = render_block(name, body)
    if not current:
        return block

    begin, end = block_markers(name)
    pattern = re.compile(
        rf"^{re.escape(begin)}\n.*?^{re.escape(end)}\n?",
        re.MULTILINE | re.DOTALL,
    )
    if pattern.search(current):
        return pattern.sub(lambda _: block, current, count=1)

    separator = "" if current.endswith("\n\n") else ("\n" if current.endswith("\n") else "\n\n")
    return f"{current}{separator}{block}"
