from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from jobboard.utils.dates import as_datetime, is_past, to_naive_utc
from jobboard.utils.file_upload import build_cv_filename, cv_owner_id, cv_path, get_file_extension


def test_as_datetime_accepts_sqlite_strings():
    assert as_datetime(None) is None
    assert as_datetime("2026-03-05 10:20:30") == datetime(2026, 3, 5, 10, 20, 30)
    assert as_datetime("2026-03-05T10:20:30.250000") == datetime(2026, 3, 5, 10, 20, 30, 250000)
    assert as_datetime("2026-03-05T10:20:30Z") == datetime(2026, 3, 5, 10, 20, 30)
    assert as_datetime("2026-03-05 10:20:30+00:00") == datetime(2026, 3, 5, 10, 20, 30)


def test_is_past():
    now = datetime(2026, 1, 1)
    assert is_past(now - timedelta(seconds=1), now)
    assert not is_past(now + timedelta(days=1), now)
    assert not is_past(None, now)


def test_to_naive_utc():
    aware = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2026, 1, 1, 10, 0)
    assert to_naive_utc(datetime(2026, 1, 1)) == datetime(2026, 1, 1)


def test_cv_filenames():
    assert get_file_extension("My CV.PDF") == ".pdf"
    assert get_file_extension("README") == ""
    name = build_cv_filename(42, ".docx")
    assert name.startswith("42_") and name.endswith(".docx")
    assert cv_owner_id(name) == 42
    assert cv_owner_id("anonymous.pdf") is None


@pytest.mark.parametrize("filename", ["../etc/passwd", ".hidden", "a/b.pdf"])
def test_cv_path_rejects_traversal(filename):
    with pytest.raises(HTTPException):
        cv_path(filename)
