"""
Reporter - Human-readable queue reports.
"""

import sys
from collections import Counter
from typing import List, Optional, TextIO

from .job_store import ALL_STATES


class Reporter:
    """
    Prints gallery queue-status reports.
    """

    def __init__(self, output: Optional[TextIO] = None):
        """
        Args:
            output: Output stream (default: stdout)
        """
        self.output = output or sys.stdout

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def report_gallery_status(self, gallery_id: str, rows: List[dict]) -> None:
        """
        Print one line per job and totals per state.

        Args:
            gallery_id: Gallery the rows belong to
            rows: Rows from `JobStore.gallery_status`
        """
        self._print("=" * 60)
        self._print(f"Queue status for gallery {gallery_id}")
        self._print("=" * 60)

        if not rows:
            self._print("  No jobs.")
            return

        self._print(f"  {'ID':>8}  {'STATE':<10} {'PROGRESS':>8}  FILENAME")
        for row in rows:
            self._print(f"  {row['id']:>8}  {row['state']:<10} {row['progress']:>7}%  {row['filename']}")

        counts = Counter(row['state'] for row in rows)
        self._print()
        totals = ", ".join(f"{counts.get(state.value, 0)} {state.value}" for state in ALL_STATES)
        self._print(f"  Total: {len(rows)} ({totals})")
