"""
Report rendering for pivot tables.
"""

from .render import parse_csv, render_console, render_failures, to_csv, write_csv

__all__ = ["parse_csv", "render_console", "render_failures", "to_csv", "write_csv"]
