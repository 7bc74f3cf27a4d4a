"""Partitioning of generated test files into top-level test groups.

A file is split into a header (imports, constants), the ordered list of
top-level ``test.describe`` blocks, and a footer. Nested groups stay inside
their parent block.
"""

import re
from dataclasses import dataclass, field

from .scanner import GROUP_TOKEN, NOT_FOUND, blank_literals, scan_block_end

_TITLE_RE = re.compile(
    r"""test\.describe\s*\(\s*(['"`])((?:\\.|(?!\1).)+?)\1""",
    re.DOTALL,
)
_LEADING_WORD_RE = re.compile(r"^(\w+)\s+")
_FIRST_WORD_RE = re.compile(r"^(\w+)")
_METHOD_RE = re.compile(r"(\w+)\s+method", re.IGNORECASE)


@dataclass(frozen=True)
class LabelRule:
    """Maps any of ``keywords`` found in a block title to ``label``."""

    label: str
    keywords: tuple[str, ...]


DEFAULT_VOCABULARY: tuple[LabelRule, ...] = (
    LabelRule("order", ("order",)),
    LabelRule("user", ("user",)),
    LabelRule("auth", ("auth", "login", "logout")),
    LabelRule("payment", ("payment",)),
)


@dataclass(frozen=True)
class Block:
    """One top-level test group and its full delimited body."""

    content: str
    start: int
    end: int
    title: str | None = None
    feature_label: str | None = None
    test_label: str | None = None


@dataclass
class ParsedFile:
    """Header, top-level blocks and footer of a test file."""

    header: str = ""
    blocks: list[Block] = field(default_factory=list)
    footer: str = ""

    def reconstruct(self) -> str:
        """Join the parts back together with normalized seams."""
        parts = [self.header, *(b.content for b in self.blocks), self.footer]
        return "\n\n".join(p for p in parts if p)


def extract_title(block_content: str) -> str | None:
    """Return the first quoted string argument of the group call."""
    m = _TITLE_RE.match(block_content)
    if not m:
        return None
    return m.group(2)


def extract_feature_label(
    title: str | None, vocabulary: tuple[LabelRule, ...] = DEFAULT_VOCABULARY
) -> str | None:
    """Derive a feature label from a block title.

    e.g. "Order Management Service" -> "order".
    """
    if not title:
        return None

    lower_title = title.lower()
    for rule in vocabulary:
        if any(kw.lower() in lower_title for kw in rule.keywords):
            return rule.label

    m = _LEADING_WORD_RE.match(title)
    if m:
        return m.group(1).lower()
    return None


def extract_test_label(title: str | None) -> str | None:
    """Derive a test label from a block title.

    e.g. "updateOrder method" -> "updateorder".
    """
    if not title:
        return None

    m = _METHOD_RE.search(title)
    if m:
        return m.group(1).lower()

    m = _FIRST_WORD_RE.match(title)
    if m:
        return m.group(1).lower()
    return None


def _is_identifier_tail(code: str, i: int) -> bool:
    # e.g. "mytest.describe(" or "this.test.describe("
    if i == 0:
        return False
    prev = code[i - 1]
    return prev.isalnum() or prev in "_$."


def parse_file(text: str, vocabulary: tuple[LabelRule, ...] = DEFAULT_VOCABULARY) -> ParsedFile:
    """Split a test file into header, top-level blocks and footer.

    Occurrences of the group token inside strings, comments or another open
    block are ignored. A group whose end cannot be found is skipped.

    Args:
        text: Full file text.
        vocabulary: Keyword rules used to derive feature labels.

    Returns:
        ParsedFile; header and footer are empty when no block was found.
    """
    code = blank_literals(text)
    blocks: list[Block] = []

    cursor = 0
    depth = 0
    depth_pos = 0

    while cursor < len(code):
        occurrence = code.find(GROUP_TOKEN, cursor)
        if occurrence == NOT_FOUND:
            break

        # Unmatched braces before this occurrence
        segment = code[depth_pos:occurrence]
        depth += segment.count("{") - segment.count("}")
        depth_pos = occurrence

        if depth != 0 or _is_identifier_tail(code, occurrence):
            cursor = occurrence + 1
            continue

        end = scan_block_end(code, occurrence)
        if end == NOT_FOUND:
            cursor = occurrence + 1
            continue

        content = text[occurrence:end]
        title = extract_title(content)
        blocks.append(
            Block(
                content=content,
                start=occurrence,
                end=end,
                title=title,
                feature_label=extract_feature_label(title, vocabulary),
                test_label=extract_test_label(title),
            )
        )

        segment = code[occurrence:end]
        depth += segment.count("{") - segment.count("}")
        depth_pos = end
        cursor = end

    if not blocks:
        return ParsedFile()

    return ParsedFile(
        header=text[: blocks[0].start].strip(),
        blocks=blocks,
        footer=text[blocks[-1].end :].strip(),
    )
