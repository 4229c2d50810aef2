"""
Plain-text lineage report artifact.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from txlineage.models import LineageReport

DEFAULT_REPORT_PATH = Path("out.txt")


def render_report(report: LineageReport) -> str:
    """The ten report lines, newline separated, with a trailing newline."""
    return "\n".join(report.lines()) + "\n"


class ReportWriter:
    def write(self, report: LineageReport, destination: Path | str = DEFAULT_REPORT_PATH) -> Path:
        """
        Write ``report`` to ``destination``, replacing any existing file.

        Raises:
            OSError: If the file cannot be written
        """
        path = Path(destination)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(render_report(report), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write report to {path}: {e}")
            raise
        logger.info(f"Report for {report.txid} written to {path}")
        return path
