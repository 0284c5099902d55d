import gzip
import io
import tarfile

import pytest

from backups_storage.storage.content_type import (
    DEFAULT_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
    detect_content_type,
)


def _tar_bytes() -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.USTAR_FORMAT) as archive:
        info = tarfile.TarInfo("dump.sql")
        payload = b"select 1;"
        info.size = len(payload)
        archive.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"%PDF-1.4\n...", "application/pdf"),
        (b"\x89PNG\r\n\x1a\n\x00\x00", "image/png"),
        (b"PK\x03\x04\x14\x00", "application/zip"),
        (gzip.compress(b"backup"), "application/x-gzip"),
        (b"(\xb5/\xfd\x00\x00", "application/zstd"),
        (b"  <!DOCTYPE html><html></html>", "text/html; charset=utf-8"),
        (b"<?xml version='1.0'?><a/>", "text/xml; charset=utf-8"),
        (b"CREATE TABLE t (id int);\n", TEXT_CONTENT_TYPE),
        ("привет, мир".encode("utf-8"), TEXT_CONTENT_TYPE),
        (b"\x00\x01\x02\x03", DEFAULT_CONTENT_TYPE),
        (b"", DEFAULT_CONTENT_TYPE),
    ],
)
def test_detect_content_type(data, expected):
    assert detect_content_type(data) == expected


def test_detects_tar_by_header_offset():
    assert detect_content_type(_tar_bytes()) == "application/x-tar"


def test_only_leading_bytes_are_inspected():
    data = b"a" * 512 + b"\x00" * 100

    assert detect_content_type(data) == TEXT_CONTENT_TYPE


def test_truncated_multibyte_sequence_is_still_text():
    data = b"a" * 511 + "ж".encode("utf-8")

    assert detect_content_type(data) == TEXT_CONTENT_TYPE
