"""Console prompting used by interactive mode."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, Optional

import click

from . import enums

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_date(text: Optional[str]) -> bool:
    """True for blank input or a real calendar date written YYYY-MM-DD."""
    if not text:
        return True
    if not _DATE_RE.match(text):
        return False
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _label(message: str, current: Optional[str]) -> str:
    if not current:
        return message
    return f"{message} [Current: {current}] (Press Enter to keep)"


def _read(label: str) -> str:
    return click.prompt(label, default="", show_default=False, prompt_suffix=": ").strip()


def prompt(
    message: str,
    required: bool = False,
    current: Optional[str] = None,
    validator: Optional[Callable[[str], bool]] = None,
    error: str = "Invalid input format.",
) -> Optional[str]:
    """Ask for one value until it is acceptable.

    Enter keeps *current* when there is one.  Required values re-prompt
    when blank; non-blank values failing *validator* re-prompt with
    *error*.  Returns None for blank optional input.
    """
    label = _label(message, current)
    while True:
        text = _read(label)
        if not text:
            if current:
                return current
            if required:
                click.echo("Input is required.")
                continue
            return None
        if validator is not None and not validator(text):
            click.echo(error)
            continue
        return text


def prompt_enum(
    message: str,
    enum_cls,
    required: bool = False,
    current: Optional[str] = None,
):
    """Ask for an enum value by canonical name (any case).  Returns the member or None."""
    allowed = enums.allowed_values(enum_cls)
    label = _label(f"{message} ({allowed})", current)
    while True:
        text = _read(label)
        if not text:
            if current:
                return enums.try_parse(enum_cls, current)
            if required:
                click.echo("Input is required.")
                continue
            return None
        member = enums.try_parse(enum_cls, text)
        if member is None:
            click.echo(f"Invalid value. Allowed: {allowed}.")
            continue
        return member
