"""Repair of OFX tag soup into well-formed XML.

QFX/OFX 1.x bodies are SGML: aggregates such as ``<STMTTRN>`` are closed
explicitly, but leaf elements are written as ``<TRNAMT>-12.50`` with no
closing tag. :func:`repair_tag_soup` walks the markup once, keeping a stack
of open tag names, and synthesizes the missing closers:

- an opening tag while a leaf is on top of the stack closes that leaf first;
- an explicit closing tag closes every leaf above the matching aggregate;
- at end of input every tag still open is closed.

Aggregate names come from a fixed set. Whitespace between tags is not
significant, so indented and single-line files repair identically.
"""

from __future__ import annotations

import re

OFX_ROOT_TAG = "OFX"

CONTAINER_TAGS = frozenset(
    {
        "OFX",
        "SIGNONMSGSRSV1",
        "SONRS",
        "STATUS",
        "FI",
        "BANKMSGSRSV1",
        "STMTTRNRS",
        "STMTRS",
        "BANKACCTFROM",
        "BANKACCTTO",
        "BANKTRANLIST",
        "STMTTRN",
        "LEDGERBAL",
        "AVAILBAL",
        "CREDITCARDMSGSRSV1",
        "CCSTMTTRNRS",
        "CCSTMTRS",
        "CCACCTFROM",
        "CCACCTTO",
        "PAYEE",
        "CURRENCY",
        "ORIGCURRENCY",
        "MKTGINFO",
    }
)

_TAG_NAME_RE = re.compile(r"[A-Za-z0-9_.\-]+")


class TagSoupError(ValueError):
    """Raised when markup cannot be reconstructed at all."""


def split_header(content: str) -> tuple[dict[str, str], str]:
    """Split an OFX file into its ``KEY:VALUE`` header and its body.

    The body starts at the first ``<OFX>`` tag (case-insensitive).

    Returns:
        A ``(header, body)`` tuple. *header* maps keys to values for every
        well-formed header line.

    Raises:
        TagSoupError: If no ``<OFX>`` root tag is present.
    """
    match = re.search(r"<OFX>", content, re.IGNORECASE)
    if match is None:
        raise TagSoupError("root <OFX> tag not found")

    header: dict[str, str] = {}
    for line in content[: match.start()].splitlines():
        line = line.strip()
        if ":" not in line or line.startswith("<"):
            continue
        key, value = line.split(":", 1)
        header[key.strip()] = value.strip()

    return header, content[match.start() :]


def repair_tag_soup(body: str) -> str:
    """Return *body* as well-formed XML by closing unclosed leaf tags.

    Tag names are upper-cased. Text is trimmed and every ampersand is
    escaped, so entity references in values reach the caller verbatim.
    Comments and processing instructions are dropped, as are closing tags
    that match nothing on the stack.

    Raises:
        TagSoupError: If a tag is never terminated by ``>`` or has an
            invalid name.
    """
    out: list[str] = []
    stack: list[str] = []
    pos = 0
    length = len(body)

    while pos < length:
        lt = body.find("<", pos)
        if lt == -1:
            _emit_text(out, body[pos:])
            break

        _emit_text(out, body[pos:lt])

        if body.startswith("<!--", lt):
            end = body.find("-->", lt + 4)
            if end == -1:
                raise TagSoupError(f"unterminated comment at offset {lt}")
            pos = end + 3
            continue

        gt = body.find(">", lt + 1)
        if gt == -1:
            raise TagSoupError(f"unterminated tag at offset {lt}")
        pos = gt + 1

        raw = body[lt + 1 : gt].strip()
        if raw.startswith("?") or raw.startswith("!"):
            continue

        if raw.startswith("/"):
            _close_tag(out, stack, _tag_name(raw[1:], lt))
            continue

        self_closing = raw.endswith("/")
        name = _tag_name(raw.rstrip("/"), lt)

        if stack and stack[-1] not in CONTAINER_TAGS:
            out.append(f"</{stack.pop()}>")

        if self_closing:
            out.append(f"<{name}/>")
        else:
            out.append(f"<{name}>")
            stack.append(name)

    while stack:
        out.append(f"</{stack.pop()}>")

    return "".join(out)


def _tag_name(raw: str, offset: int) -> str:
    # Attributes are not used by OFX; keep only the element name.
    name = raw.split(None, 1)[0] if raw else ""
    if not _TAG_NAME_RE.fullmatch(name):
        raise TagSoupError(f"invalid tag name {raw!r} at offset {offset}")
    return name.upper()


def _close_tag(out: list[str], stack: list[str], name: str) -> None:
    """Close *name*, auto-closing any leaf tags opened after it."""
    if name not in stack:
        return
    while stack:
        top = stack.pop()
        out.append(f"</{top}>")
        if top == name:
            return


def _emit_text(out: list[str], text: str) -> None:
    text = text.strip()
    if text:
        out.append(text.replace("&", "&amp;"))
