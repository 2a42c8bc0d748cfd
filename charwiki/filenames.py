"""
Recovery of readable upload filenames.

Browsers and multipart parsers disagree on how non-ASCII filenames travel:
some clients percent-encode them, others send UTF-8 bytes that the server
side decodes as latin-1, which turns Chinese names into mojibake. The
heuristic below tries each repair in turn and keeps the first one that
produces CJK text.
"""

from __future__ import annotations

import re
from typing import Callable, Optional
from urllib.parse import unquote

_CJK = re.compile(r"[\u4e00-\u9fff]")


def contains_cjk(value: str) -> bool:
    return _CJK.search(value) is not None


def _from_latin1(filename: str) -> str:
    return filename.encode("latin-1").decode("utf-8")


def _from_raw_bytes(filename: str) -> str:
    # Names decoded with surrogateescape still carry the original bytes.
    return filename.encode("utf-8", "surrogateescape").decode("utf-8")


def _try_cjk(decode: Callable[[str], str], filename: str) -> Optional[str]:
    try:
        decoded = decode(filename)
    except UnicodeError:
        return None
    return decoded if contains_cjk(decoded) else None


def sanitize_filename(filename: str) -> str:
    """
    Returns a best-effort decoding of ``filename``.

    Order of attempts:
      1. percent-encoded names are URL-decoded, unconditionally;
      2. latin-1 mojibake is re-decoded as UTF-8 if that yields CJK text;
      3. names carrying undecoded bytes (surrogate escapes) are re-decoded
         as UTF-8 if that yields CJK text;
      4. otherwise the name is returned unchanged.

    A decoding error in any attempt falls back to the original name.
    """
    if "%" in filename:
        try:
            return unquote(filename, errors="strict")
        except UnicodeError:
            return filename

    for decode in (_from_latin1, _from_raw_bytes):
        decoded = _try_cjk(decode, filename)
        if decoded is not None:
            return decoded
    return filename
