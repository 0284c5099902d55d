"""Content type sniffing for upload payloads.

Only the leading bytes of a payload are inspected, so the result can be
decided from the first chunk of a stream before the rest has been read.
"""

from __future__ import annotations

SNIFF_LEN = 512

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# (magic prefix, offset, content type), checked in order
_SIGNATURES: tuple[tuple[bytes, int, str], ...] = (
    (b"%PDF-", 0, "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"BM", 0, "image/bmp"),
    (b"PK\x03\x04", 0, "application/zip"),
    (b"\x1f\x8b\x08", 0, "application/x-gzip"),
    (b"BZh", 0, "application/x-bzip2"),
    (b"\xfd7zXZ\x00", 0, "application/x-xz"),
    (b"(\xb5/\xfd", 0, "application/zstd"),
    (b"7z\xbc\xaf\x27\x1c", 0, "application/x-7z-compressed"),
    (b"Rar!\x1a\x07", 0, "application/x-rar-compressed"),
    (b"ustar", 257, "application/x-tar"),
    (b"OggS\x00", 0, "application/ogg"),
    (b"\x00asm", 0, "application/wasm"),
)

_HTML_MARKERS: tuple[bytes, ...] = (
    b"<!doctype html",
    b"<html",
    b"<head",
    b"<body",
)

# Control bytes that never appear in text
_BINARY_BYTES = frozenset(
    [*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20)]
)


def detect_content_type(data: bytes) -> str:
    """Return the MIME type suggested by the leading bytes of ``data``.

    Falls back to ``text/plain; charset=utf-8`` for printable UTF-8 and to
    ``application/octet-stream`` for anything else, empty input included.
    """
    head = data[:SNIFF_LEN]
    for magic, offset, content_type in _SIGNATURES:
        if head[offset : offset + len(magic)] == magic:
            return content_type

    stripped = head.lstrip(b"\t\n\x0c\r ")
    lowered = stripped[:16].lower()
    if any(lowered.startswith(marker) for marker in _HTML_MARKERS):
        return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    if not head or any(byte in _BINARY_BYTES for byte in head):
        return DEFAULT_CONTENT_TYPE
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # a multi-byte sequence cut off by SNIFF_LEN is still text
        if exc.start < len(head) - 3:
            return DEFAULT_CONTENT_TYPE
    return TEXT_CONTENT_TYPE
