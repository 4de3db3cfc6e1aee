"""
storage.py – Credential storage and retrieval.

This module contains CredentialStore, the single class responsible for all
file I/O related to stored passwords:

  - Appending new records (site / username / password) to the CSV file.
  - Reading every record back, tolerating rows written by older versions
    of the tool that carried fewer than three columns.

The file is plain comma-separated text without a header row.  Nothing is
encrypted: this tool has never been a vault, and the file format is kept
readable by any spreadsheet or text editor.

filter_records() is a pure helper used by the list view; it does no I/O.
"""

import csv
import logging
import os
from typing import Iterable, List, NamedTuple

logger = logging.getLogger("SecurePasswordManager")

# Number of columns in a stored row.
FIELD_COUNT = 3


class StoreError(Exception):
    """
    Base class for CredentialStore failures.

    Attributes
    ----------
    path : str
        The backing file the operation was working on.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path: str = path


class OpenFailure(StoreError):
    """The backing file exists (or must be created) but cannot be opened."""


class ParseError(StoreError):
    """The backing file contains a row that is not valid CSV."""


class WriteFailure(StoreError):
    """A record could not be written or flushed to the backing file."""


class CredentialRecord(NamedTuple):
    """One stored (site, username, secret) triple."""

    site: str
    username: str
    secret: str

    @classmethod
    def from_row(cls, row: List[str]) -> "CredentialRecord":
        """
        Normalise a raw CSV row into a record.

        Missing trailing fields are padded with empty strings; anything
        beyond the third column is ignored.
        """
        fields = list(row[:FIELD_COUNT])
        while len(fields) < FIELD_COUNT:
            fields.append("")
        return cls(*fields)


class CredentialStore:
    """
    Append-only CSV store of credential records.

    Parameters
    ----------
    path : str
        Location of the CSV file.  It is created on the first append.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    @property
    def name(self) -> str:
        """File name shown to the user in status messages."""
        return os.path.basename(self.path)

    # ------------------------------------------------------------------
    # Writing data
    # ------------------------------------------------------------------

    def append(self, record: CredentialRecord) -> None:
        """
        Append *record* as a single CSV row and flush it to disk.

        The file is opened in append mode, so existing rows are never
        rewritten.  Writers in other processes are not coordinated with.

        Raises
        ------
        OpenFailure
            If the file cannot be opened or created.
        WriteFailure
            If writing or flushing the row fails.
        """
        try:
            fh = open(self.path, "a", newline="", encoding="utf-8")
        except OSError as exc:
            logger.exception("Failed to open credential file for append: %s", self.path)
            raise OpenFailure(f"failed to open file: {exc.strerror or exc}", self.path) from exc

        # close() flushes again, so it must sit inside the same try.
        try:
            with fh:
                csv.writer(fh).writerow(list(record))
                fh.flush()
        except (OSError, csv.Error) as exc:
            logger.exception("Failed to write record to %s", self.path)
            raise WriteFailure(f"failed to write record: {exc}", self.path) from exc

        logger.info("Saved record for site %r to %s", record.site, self.path)

    # ------------------------------------------------------------------
    # Reading data
    # ------------------------------------------------------------------

    def load_all(self) -> List[CredentialRecord]:
        """
        Return every record in file order.

        A missing file is not an error: it simply means nothing has been
        saved yet, and an empty list is returned.  Blank lines are
        skipped.

        Raises
        ------
        OpenFailure
            If the file exists but cannot be opened.
        ParseError
            If a row has broken quoting or the file is not valid UTF-8.
        """
        try:
            fh = open(self.path, "r", newline="", encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.exception("Failed to open credential file: %s", self.path)
            raise OpenFailure(f"failed to open file: {exc.strerror or exc}", self.path) from exc

        with fh:
            reader = csv.reader(fh, strict=True)
            try:
                records = [CredentialRecord.from_row(row) for row in reader if row]
            except csv.Error as exc:
                logger.warning("Malformed CSV in %s at line %d: %s", self.path, reader.line_num, exc)
                raise ParseError(f"line {reader.line_num}: {exc}", self.path) from exc
            except UnicodeDecodeError as exc:
                logger.warning("Credential file %s is not valid UTF-8", self.path)
                raise ParseError(f"file is not valid UTF-8: {exc.reason}", self.path) from exc

        logger.debug("Loaded %d records from %s", len(records), self.path)
        return records


def filter_records(records: Iterable[CredentialRecord], query: str) -> List[CredentialRecord]:
    """
    Return the records whose site or username contains *query*,
    ignoring case.  The secret is never searched.

    An empty query returns every record in its original order.
    """
    records = list(records)
    if not query:
        return records
    needle = query.lower()
    return [
        r for r in records
        if needle in r.site.lower() or needle in r.username.lower()
    ]
