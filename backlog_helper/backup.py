"""Checksum-verified backups of the data file.

Before the store rewrites an existing workbook it may take one backup
per day.  A backup only counts once its SHA-256 matches the live file;
a copy that does not match is deleted and the save is aborted, leaving
the live file untouched.

Backups live next to the data file:

    <dir>/.backups/<file name>.<yymmdd><letter>
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import string
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

_log = logging.getLogger("backlog.backup")

BACKUP_DIRNAME = ".backups"


class BackupError(RuntimeError):
    """Raised when a backup cannot be created or verified."""


# ── Checksum helpers ──────────────────────────────────────────────

def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


# ── Backup listing ────────────────────────────────────────────────

def backup_dir(data_path: Path) -> Path:
    return data_path.parent / BACKUP_DIRNAME


def _backup_pattern(data_path: Path) -> re.Pattern:
    return re.compile(re.escape(data_path.name) + r"\.(\d{6})([a-z])$")


def list_backups(data_path: Path) -> list[tuple[date, Path]]:
    """Return (backup date, path) pairs for a data file, oldest first."""
    directory = backup_dir(data_path)
    if not directory.is_dir():
        return []
    pattern = _backup_pattern(data_path)
    found = []
    for candidate in directory.iterdir():
        m = pattern.match(candidate.name)
        if not m:
            continue
        try:
            taken = datetime.strptime(m.group(1), "%y%m%d").date()
        except ValueError:
            continue
        found.append((taken, candidate))
    return sorted(found)


# ── Verified backup ───────────────────────────────────────────────

def create_verified_backup(data_path: Path, today: Optional[date] = None) -> Path:
    """Copy the data file into the backup directory and verify the copy.

    Returns the backup path on success.
    Raises BackupError if the file is missing, no slot is free, or the
    copy does not match.
    """
    if not data_path.exists():
        raise BackupError(f"Data file does not exist: {data_path}")

    directory = backup_dir(data_path)
    directory.mkdir(exist_ok=True)

    date_str = (today or date.today()).strftime("%y%m%d")
    base = f"{data_path.name}.{date_str}"

    backup_path: Optional[Path] = None
    for letter in string.ascii_lowercase:
        candidate = directory / f"{base}{letter}"
        if not candidate.exists():
            backup_path = candidate
            break

    if backup_path is None:
        raise BackupError(f"Exhausted backup slots for {base}[a-z]")

    # Take the checksum of the live file BEFORE copying.
    live_hash = sha256_file(data_path)

    shutil.copy2(data_path, backup_path)

    backup_hash = sha256_file(backup_path)
    if backup_hash != live_hash:
        # A copy that does not match cannot be trusted.
        backup_path.unlink(missing_ok=True)
        raise BackupError(
            f"Backup checksum mismatch!  live={live_hash}  backup={backup_hash}"
        )

    _log.info("backed up %s to %s", data_path, backup_path)
    return backup_path


# ── Retention ─────────────────────────────────────────────────────

def prune_backups(data_path: Path, retain_days: int, today: Optional[date] = None) -> list[Path]:
    """Delete backups older than *retain_days*.  Returns the removed paths."""
    cutoff = (today or date.today()) - timedelta(days=retain_days)
    removed = []
    for taken, path in list_backups(data_path):
        if taken < cutoff:
            path.unlink(missing_ok=True)
            removed.append(path)
    if removed:
        _log.debug("pruned %d backup(s) of %s older than %s", len(removed), data_path.name, cutoff)
    return removed


def ensure_daily_backup(data_path: Path, retain_days: int, today: Optional[date] = None) -> Optional[Path]:
    """Take today's backup of an existing data file if there is none yet.

    Returns the new backup path, or None when nothing was copied.
    """
    if not data_path.exists():
        return None
    today = today or date.today()
    created = None
    if not any(taken == today for taken, _ in list_backups(data_path)):
        created = create_verified_backup(data_path, today=today)
    prune_backups(data_path, retain_days, today=today)
    return created
