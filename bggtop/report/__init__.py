"""Report assembly."""

from bggtop.report.report import format_report, format_row, make_report


__all__ = ["format_report", "format_row", "make_report"]
