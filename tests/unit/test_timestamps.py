import os
import pytest
from datetime import datetime
from autoenc.infrastructure.timestamps import (
    apply_mtime_ns,
    parse_cli_timestamp,
    read_mtime_ns,
    set_last_modified,
)


def test_parse_cli_timestamp():
    assert parse_cli_timestamp("07 04 2021 18:30") == datetime(2021, 7, 4, 18, 30)


def test_parse_cli_timestamp_tolerates_extra_whitespace():
    assert parse_cli_timestamp("  07  04 2021   18:30 ") == datetime(2021, 7, 4, 18, 30)


@pytest.mark.parametrize("value", ["2021-07-04 18:30", "13 01 2021 10:00", "07 04 2021", ""])
def test_parse_cli_timestamp_rejects_bad_input(value):
    with pytest.raises(ValueError, match="MM dd yyyy HH:mm"):
        parse_cli_timestamp(value)


def test_apply_mtime_ns_keeps_atime(tmp_path):
    f = tmp_path / "clip.m4v"
    f.write_text("x")
    os.utime(f, ns=(1_000_000_000_000_000_000, 1_100_000_000_000_000_000))

    apply_mtime_ns(f, 1_500_000_000_000_000_000)

    st = os.stat(f)
    assert st.st_mtime_ns == 1_500_000_000_000_000_000
    assert st.st_atime_ns == 1_000_000_000_000_000_000
    assert read_mtime_ns(f) == 1_500_000_000_000_000_000


def test_set_last_modified(tmp_path):
    f = tmp_path / "clip.MOV"
    f.write_text("x")
    when = datetime(2021, 7, 4, 18, 30)

    set_last_modified(f, when)

    assert os.stat(f).st_mtime == when.timestamp()


def test_set_last_modified_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        set_last_modified(tmp_path / "missing.MOV", datetime(2021, 7, 4, 18, 30))
