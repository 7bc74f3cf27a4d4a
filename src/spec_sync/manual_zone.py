"""Protection of hand-written code across regeneration.

Engineers put custom tests between the manual-zone markers. The zone is
read from the existing file before regeneration and re-inserted when the
regenerated text lost the start marker. Only the first zone in a file is
supported.
"""

import re

MANUAL_ZONE_START = "/* <MANUAL_ZONE> */"
MANUAL_ZONE_END = "/* </MANUAL_ZONE> */"

_IMPORT_LINE_RE = re.compile(r"^(import\b|export\b.*\bfrom\b|.*\brequire\s*\()")
_COMMENT_PREFIXES = ("//", "/*", "*", "*/")


def extract_manual_zone(text: str) -> str | None:
    """Return the stripped text between the first pair of zone markers.

    Returns None when either marker is missing or the end marker does not
    follow the start marker.
    """
    start = text.find(MANUAL_ZONE_START)
    if start == -1:
        return None
    content_start = start + len(MANUAL_ZONE_START)
    end = text.find(MANUAL_ZONE_END, content_start)
    if end == -1:
        return None
    return text[content_start:end].strip()


def build_manual_zone(raw_content: str) -> str:
    """Wrap ``raw_content`` in the zone markers."""
    return f"{MANUAL_ZONE_START}\n{raw_content}\n{MANUAL_ZONE_END}"


def _is_header_line(line: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return True
    if stripped.startswith(_COMMENT_PREFIXES):
        return True
    return bool(_IMPORT_LINE_RE.match(stripped))


def ensure_manual_zone(regenerated: str, raw_content: str | None) -> str:
    """Re-insert a manual zone that regeneration dropped.

    Presence of the start marker is the only check; zone content is not
    compared. A missing zone is inserted before the first line that is not
    blank, a comment or an import, or appended when there is no such line.

    Args:
        regenerated: Text produced by the generation step.
        raw_content: Zone payload extracted from the previous file, or None.

    Returns:
        Text guaranteed to contain the zone when ``raw_content`` is set.
    """
    if raw_content is None:
        return regenerated
    if MANUAL_ZONE_START in regenerated:
        return regenerated

    zone = build_manual_zone(raw_content)

    lines = regenerated.split("\n")
    for idx, line in enumerate(lines):
        if not _is_header_line(line):
            return "\n".join([*lines[:idx], zone, "", *lines[idx:]])

    body = regenerated.rstrip()
    if not body:
        return zone + "\n"
    return f"{body}\n\n{zone}\n"
