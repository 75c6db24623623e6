"""Backlog, goal, plan and obstacle tracking in a single spreadsheet file."""

__version__ = "0.1.0"
