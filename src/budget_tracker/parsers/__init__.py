"""Parser registry and format detection.

Each parser is a module exposing a ``parse(content, source_file)`` function
that returns a :class:`~budget_tracker.models.ParseResult`. The ``PARSERS``
dict maps format tags to parse functions; :func:`detect_format` picks the
tag for a file and :func:`parse_content` / :func:`parse_file` dispatch to it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from budget_tracker.models import SOURCE_CSV, SOURCE_QFX, ParseError, ParseResult
from budget_tracker.parsers import delimited, qfx

logger = logging.getLogger(__name__)

FORMAT_UNKNOWN = "UNKNOWN"

PARSERS: dict[str, Callable[[str, str], ParseResult]] = {
    SOURCE_QFX: qfx.parse,
    SOURCE_CSV: delimited.parse,
}

_EXTENSIONS = {
    ".qfx": SOURCE_QFX,
    ".ofx": SOURCE_QFX,
    ".csv": SOURCE_CSV,
}


def get_parser(name: str) -> Callable[[str, str], ParseResult]:
    """Look up a parser by format tag.

    Raises:
        KeyError: If no parser is registered under the given tag.
    """
    return PARSERS[name]


def detect_format(filename: str, content: str) -> str:
    """Return ``"QFX"``, ``"CSV"`` or ``"UNKNOWN"`` for a file.

    The extension is checked first (case-insensitive); if it is not
    recognized the content is sniffed for an OFX header or root tag, then
    for the issuer CSV header line.
    """
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTENSIONS:
        return _EXTENSIONS[suffix]

    if content.startswith("OFXHEADER:") or "<OFX>" in content:
        return SOURCE_QFX
    if delimited.HEADER_LINE in content:
        return SOURCE_CSV

    return FORMAT_UNKNOWN


def parse_content(filename: str, content: str) -> ParseResult:
    """Detect the format of *content* and parse it.

    An unknown format is reported as a single file-level error.
    """
    fmt = detect_format(filename, content)
    if fmt == FORMAT_UNKNOWN:
        return ParseResult(
            errors=[
                ParseError(
                    message=f"Unknown file format: {filename}. Expected .qfx or .csv file."
                )
            ]
        )
    logger.debug("%s: detected format %s", filename, fmt)
    return get_parser(fmt)(content, filename)


def parse_file(file_path: Path) -> ParseResult:
    """Read *file_path* and parse it.

    Unreadable files are reported as a single file-level error rather than
    raised.
    """
    file_path = Path(file_path)
    try:
        content = file_path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        return ParseResult(errors=[ParseError(message=f"{file_path}: file not found")])
    except (OSError, UnicodeDecodeError) as exc:
        return ParseResult(
            errors=[ParseError(message=f"Error reading file {file_path.name}: {exc}")]
        )
    return parse_content(file_path.name, content)


def parse_files(file_paths: Iterable[Path]) -> ParseResult:
    """Parse several files and concatenate their results in argument order."""
    combined = ParseResult()
    for file_path in file_paths:
        combined.extend(parse_file(file_path))
    return combined
