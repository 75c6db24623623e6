"""Spreadsheet-backed storage for backlog records.

The whole workbook is the database: one sheet per record kind, a header
row, then one record per row keyed by the ID column.  A store caches the
decoded workbook until invalidate() is called; every mutation re-encodes
the whole workbook and rewrites the file.  The cache is kept after a
successful save.

There is no locking: two stores on the same path overwrite each other's
changes on save.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence, Union
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import IllegalCharacterError, InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from . import backup
from .codec import CODECS, RowCodec, RowParseError, codec_for
from .records import DEFAULT_FILENAME, RecordKind, utc_now

_log = logging.getLogger("backlog.store")


class StoreError(Exception):
    """Raised when the data file cannot be read, decoded or written."""
    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


# ── Sheet helpers ──

def _write_row(ws: Worksheet, row_idx: int, values: Sequence[Any]) -> None:
    """Overwrite cells of one row left to right; None clears a cell."""
    for col_idx, value in enumerate(values, start=1):
        cell = ws.cell(row=row_idx, column=col_idx)
        cell.value = value
        if isinstance(value, str) and value.startswith("="):
            # Keep user text verbatim instead of turning it into a formula.
            cell.data_type = "s"


def _is_blank(ws: Worksheet) -> bool:
    return ws.max_row <= 1 and all(cell.value is None for cell in ws[1])


def _ensure_sheet(wb: Workbook, codec: RowCodec) -> Worksheet:
    """Return the sheet for a codec, creating it or its header row if missing."""
    if codec.sheet_name not in wb.sheetnames:
        ws = wb.create_sheet(codec.sheet_name)
        _write_row(ws, 1, codec.headers)
        _log.info("added sheet %s with headers", codec.sheet_name)
        return ws
    ws = wb[codec.sheet_name]
    if _is_blank(ws):
        _write_row(ws, 1, codec.headers)
        _log.info("added missing headers to sheet %s", codec.sheet_name)
    return ws


def _has_id(row: Sequence[Any]) -> bool:
    return bool(row) and row[0] is not None and str(row[0]) != ""


def _find_row(ws: Worksheet, record_id: str) -> Optional[tuple[int, tuple]]:
    """Linear scan of the ID column.  Returns (row index, row values) of the first match."""
    for row_idx, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
        if _has_id(row) and str(row[0]) == record_id:
            return row_idx, row
    return None


# ── Store ──

class SpreadsheetStore:
    """Create, read and update records kept in one .xlsx file."""

    def __init__(
        self,
        file_path: Union[str, Path, None] = None,
        daily_backup: bool = False,
        backup_retain_days: int = 7,
    ):
        self.file_path = Path(file_path or DEFAULT_FILENAME)
        self.daily_backup = daily_backup
        self.backup_retain_days = backup_retain_days
        self._workbook: Optional[Workbook] = None

    @property
    def is_loaded(self) -> bool:
        return self._workbook is not None

    # ── Document lifecycle ──

    def load(self) -> Workbook:
        """Return the cached workbook, reading or creating the file on first use."""
        if self._workbook is not None:
            return self._workbook

        if self.file_path.exists():
            wb = self._decode()
            for codec in CODECS.values():
                _ensure_sheet(wb, codec)
            self._workbook = wb
            _log.debug("loaded %s", self.file_path)
        else:
            wb = Workbook()
            placeholder = wb.active
            for codec in CODECS.values():
                _ensure_sheet(wb, codec)
            wb.remove(placeholder)
            self._workbook = wb
            self.save()
            _log.info("created new data file %s", self.file_path)
        return self._workbook

    def invalidate(self) -> None:
        """Drop the cached workbook; the next access reads the file again."""
        self._workbook = None
        _log.debug("cache cleared for %s", self.file_path)

    def reload(self) -> Workbook:
        self.invalidate()
        return self.load()

    def _decode(self) -> Workbook:
        try:
            data = self.file_path.read_bytes()
        except OSError as e:
            _log.error("reading %s failed: %s", self.file_path, e)
            raise StoreError(f'Error reading Excel file "{self.file_path}": {e}', self.file_path) from e
        try:
            return load_workbook(io.BytesIO(data))
        except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
            _log.error("decoding %s failed: %s", self.file_path, e)
            raise StoreError(f'Error decoding Excel file "{self.file_path}": {e}', self.file_path) from e

    def save(self) -> None:
        """Encode the cached workbook and rewrite the file.

        Encoding happens in memory first, so a failure leaves the file on
        disk as it was.  On any failure the cache is dropped so it does not
        hold changes that never reached the file.
        """
        if self._workbook is None:
            return
        path = self.file_path
        t0 = time.monotonic()

        buffer = io.BytesIO()
        try:
            self._workbook.save(buffer)
        except (ValueError, TypeError) as e:
            self.invalidate()
            _log.error("encoding %s failed: %s", path, e)
            raise StoreError(f'Error encoding Excel file "{path}": {e}', path) from e
        data = buffer.getvalue()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if self.daily_backup:
                backup.ensure_daily_backup(path, self.backup_retain_days)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, backup.BackupError) as e:
            self.invalidate()
            _log.error("saving %s failed: %s", path, e)
            raise StoreError(f'Error saving Excel file "{path}": {e}', path) from e

        elapsed = time.monotonic() - t0
        if elapsed > 2:
            _log.warning("saving %s took %.1fs", path, elapsed)
        else:
            _log.debug("saved %s (%d bytes) in %.2fs", path, len(data), elapsed)

    def _put_row(self, ws: Worksheet, row_idx: int, values: Sequence[Any]) -> None:
        try:
            _write_row(ws, row_idx, values)
        except IllegalCharacterError as e:
            # The row may be half written; drop it along with the cache.
            self.invalidate()
            _log.error("rejected value for %s: %s", self.file_path, e)
            raise StoreError(f'Cannot store value in Excel file "{self.file_path}": {e}',
                             self.file_path) from e

    # ── Records ──

    def add(self, record) -> str:
        """Append a record under a fresh id and timestamps.  Returns the id."""
        codec = codec_for(record)
        ws = _ensure_sheet(self.load(), codec)

        record.id = str(uuid.uuid4())
        record.created_at = utc_now()
        record.updated_at = record.created_at

        self._put_row(ws, ws.max_row + 1, codec.serialize(record))
        self.save()
        _log.debug("added %s %s", codec.kind.value, record.id)
        return record.id

    def list_all(self, kind: RecordKind) -> list:
        """Return every readable record of a kind in sheet order.

        Rows without an id are skipped silently; rows that fail to parse
        are logged and skipped.
        """
        codec = CODECS[kind]
        wb = self.load()
        if codec.sheet_name not in wb.sheetnames:
            _ensure_sheet(wb, codec)
            self.save()
            return []

        ws = wb[codec.sheet_name]
        items = []
        for row_idx, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
            if not _has_id(row):
                continue
            try:
                items.append(codec.deserialize(row))
            except RowParseError as e:
                _log.warning('Error parsing row %d in sheet "%s": %s. Skipping row.',
                             row_idx, codec.sheet_name, e)
        return items

    def get_by_id(self, kind: RecordKind, record_id: str):
        """Return the record with this id, or None if absent or unreadable."""
        codec = CODECS[kind]
        wb = self.load()
        if codec.sheet_name not in wb.sheetnames:
            return None

        found = _find_row(wb[codec.sheet_name], record_id)
        if found is None:
            return None
        row_idx, row = found
        try:
            return codec.deserialize(row)
        except RowParseError as e:
            _log.warning('Error parsing row %d for ID "%s" in sheet "%s": %s.',
                         row_idx, record_id, codec.sheet_name, e)
            return None

    def update(self, record) -> bool:
        """Rewrite the row holding record.id.  Returns False if there is none."""
        codec = codec_for(record)
        wb = self.load()
        if codec.sheet_name not in wb.sheetnames:
            _log.error("sheet %s not found for update", codec.sheet_name)
            return False

        ws = wb[codec.sheet_name]
        found = _find_row(ws, record.id)
        if found is None:
            _log.warning('item with ID "%s" not found in sheet %s for update',
                         record.id, codec.sheet_name)
            return False

        record.updated_at = utc_now()
        self._put_row(ws, found[0], codec.serialize(record))
        self.save()
        _log.debug("updated %s %s", codec.kind.value, record.id)
        return True
