"""
Credential store tests - append/load, backward-compatible rows, errors and filtering.
"""

import csv
import os

import pytest

import storage
from storage import (
    CredentialRecord, CredentialStore, OpenFailure, ParseError, StoreError,
    WriteFailure, filter_records,
)


def write_raw(store, text):
    with open(store.path, "w", encoding="utf-8", newline="") as fh:
        fh.write(text)


class TestAppendAndLoad:
    """Test writing records and reading them back."""

    def test_missing_file_loads_empty_list(self, store):
        assert not os.path.exists(store.path)
        assert store.load_all() == []

    def test_append_then_load_returns_record_last(self, store):
        store.append(CredentialRecord("a.com", "u1", "p1"))
        record = CredentialRecord("example.com", "alice", "s3cr3t!")
        store.append(record)

        records = store.load_all()
        assert records[-1] == record
        assert len(records) == 2

    def test_append_creates_file_without_header(self, store):
        store.append(CredentialRecord("a.com", "u1", "p1"))
        with open(store.path, encoding="utf-8", newline="") as fh:
            assert fh.read() == "a.com,u1,p1\r\n"

    def test_fields_with_delimiters_and_newlines_round_trip(self, store):
        record = CredentialRecord('site, "quoted"', "line\nbreak", 'p,a"s\r\ns')
        store.append(record)
        assert store.load_all() == [record]

    def test_insertion_order_is_preserved(self, store):
        sites = ["c.com", "a.com", "b.com"]
        for site in sites:
            store.append(CredentialRecord(site, "user", "pw"))
        assert [r.site for r in store.load_all()] == sites

    def test_name_is_file_base_name(self, store):
        assert store.name == "passwords.csv"


class TestLegacyRows:
    """Rows from older versions of the file are normalised, not rejected."""

    def test_short_rows_are_padded(self, store):
        write_raw(store, "only-site\nsite2,user2\nsite3,user3,pw3\n")
        assert store.load_all() == [
            CredentialRecord("only-site", "", ""),
            CredentialRecord("site2", "user2", ""),
            CredentialRecord("site3", "user3", "pw3"),
        ]

    def test_extra_fields_are_dropped(self, store):
        write_raw(store, "a.com,u1,p1,note\n")
        assert store.load_all() == [CredentialRecord("a.com", "u1", "p1")]

    def test_blank_lines_are_skipped(self, store):
        write_raw(store, "a.com,u1,p1\n\nb.com,u2,p2\n")
        assert len(store.load_all()) == 2


class TestErrors:
    """Test StoreError reporting."""

    def test_bad_quoting_is_parse_error(self, store):
        write_raw(store, 'a.com,u1,p1\nb.com,"u2"x,p2\n')
        with pytest.raises(ParseError) as excinfo:
            store.load_all()
        assert excinfo.value.path == store.path

    def test_invalid_utf8_is_parse_error(self, store):
        with open(store.path, "wb") as fh:
            fh.write(b"a.com,u1,\xff\xfe\n")
        with pytest.raises(ParseError):
            store.load_all()

    def test_unopenable_path_is_open_failure(self, tmp_path):
        # A directory can never be opened as the credential file.
        store = CredentialStore(str(tmp_path))
        with pytest.raises(OpenFailure):
            store.append(CredentialRecord("a.com", "u", "p"))
        with pytest.raises(OpenFailure):
            store.load_all()

    def test_missing_parent_directory_is_open_failure(self, tmp_path):
        store = CredentialStore(str(tmp_path / "no" / "such" / "passwords.csv"))
        with pytest.raises(StoreError):
            store.append(CredentialRecord("a.com", "u", "p"))

    @pytest.mark.skipif(not os.path.exists("/dev/full"), reason="needs /dev/full")
    def test_full_disk_is_write_failure(self):
        # Both the explicit flush and the flush inside close() fail here.
        store = CredentialStore("/dev/full")
        with pytest.raises(WriteFailure) as excinfo:
            store.append(CredentialRecord("a.com", "u", "p"))
        assert excinfo.value.path == "/dev/full"

    def test_rejected_row_is_write_failure(self, store, monkeypatch):
        class BrokenWriter:
            def __init__(self, fh):
                pass

            def writerow(self, row):
                raise csv.Error("row rejected")

        monkeypatch.setattr(storage.csv, "writer", BrokenWriter)
        with pytest.raises(WriteFailure) as excinfo:
            store.append(CredentialRecord("a.com", "u", "p"))
        assert "row rejected" in str(excinfo.value)


RECORDS = [
    CredentialRecord("a.com", "u1", "p1"),
    CredentialRecord("b.com", "u2", "p2"),
    CredentialRecord("Mail.Example.org", "Alice", "zzz"),
]


class TestFilterRecords:
    """Test the in-memory filter."""

    def test_empty_query_returns_all_in_order(self):
        assert filter_records(RECORDS, "") == RECORDS

    def test_substring_on_site(self):
        assert filter_records(RECORDS[:2], "a") == [RECORDS[0]]

    def test_case_insensitive_on_site_and_username(self):
        assert filter_records(RECORDS, "EXAMPLE") == [RECORDS[2]]
        assert filter_records(RECORDS, "alice") == [RECORDS[2]]
        assert filter_records(RECORDS, "U2") == [RECORDS[1]]

    def test_secret_is_never_matched(self):
        assert filter_records(RECORDS, "zzz") == []
        assert filter_records(RECORDS, "p1") == []

    def test_no_match(self):
        assert filter_records(RECORDS, "nothing") == []
