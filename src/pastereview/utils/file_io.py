"""File helpers for manifest writes and content digests.

Digests are taken over decoded text with ``\\n`` line endings, so a file on
disk and the buffer an editor shows for it hash to the same value whatever
its byte order mark or newline style.
"""

from __future__ import annotations

import codecs
import hashlib
import locale
import os
import tempfile
from pathlib import Path

__all__ = [
    "compute_file_digest",
    "compute_text_digest",
    "decode_text",
    "normalize_newlines",
    "read_text",
    "write_text",
]

# UTF-32 LE must be tried before UTF-16 LE; its mark starts with the same bytes.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


def decode_text(raw: bytes, *, encoding: str | None = None, errors: str = "strict") -> str:
    """Decode file bytes, honouring a byte order mark when one is present.

    Without a mark the bytes are tried as UTF-8, then the locale encoding,
    then latin-1.
    """

    if encoding is None:
        encoding, raw = _sniff_encoding(raw)
    text = raw.decode(encoding, errors=errors)
    return text[1:] if text.startswith("\ufeff") else text


def normalize_newlines(text: str) -> str:
    if "\r" not in text:
        return text
    return text.replace("\r\n", "\n").replace("\r", "\n")


def read_text(
    path: Path | str,
    *,
    encoding: str | None = None,
    errors: str = "strict",
    normalize: bool = True,
) -> str:
    """Read ``path`` as the text an editor would show for it."""

    text = decode_text(Path(path).read_bytes(), encoding=encoding, errors=errors)
    return normalize_newlines(text) if normalize else text


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write ``content`` with ``\\n`` line endings.

    Atomic writes go to a temporary sibling that replaces ``path`` once it is
    flushed to disk, so readers never observe a half-written file. Errors
    propagate after the temporary file is removed.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = normalize_newlines(content).encode(encoding)
    if not atomic:
        target.write_bytes(data)
        return target

    descriptor, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return target


def compute_text_digest(text: str) -> str:
    """Return the hex SHA-256 digest of ``text`` encoded as UTF-8."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_file_digest(path: Path | str) -> str:
    """Digest of the decoded, newline-normalised content of ``path``."""

    return compute_text_digest(read_text(path))


def _sniff_encoding(raw: bytes) -> tuple[str, bytes]:
    for mark, name in _BOMS:
        if raw.startswith(mark):
            return name, raw[len(mark) :]
    preferred = locale.getpreferredencoding(False) or "utf-8"
    for candidate in dict.fromkeys(("utf-8", preferred)):
        try:
            raw.decode(candidate)
        except (UnicodeDecodeError, LookupError):
            continue
        return candidate, raw
    return "latin-1", raw
