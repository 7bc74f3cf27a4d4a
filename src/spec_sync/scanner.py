"""Structural scanning of generated test files.

Finds the extent of a ``test.describe(...)`` group by counting paren and
brace depth. Before counting, string literals, template literals and
comments are blanked out so that braces inside them do not shift block
boundaries. Regular-expression literals are not recognized.
"""

NOT_FOUND = -1

GROUP_TOKEN = "test.describe("


# === Literal masking ===


def _quoted_end(text: str, i: int) -> int:
    """Return the offset one past the string literal opened at ``i``.

    An unterminated literal ends at the next newline.
    """
    quote = text[i]
    j = i + 1
    n = len(text)
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote:
            return j + 1
        if ch == "\n":
            return j
        j += 1
    return n


def _expression_end(text: str, j: int) -> int:
    """Return the offset one past the ``}`` closing a ``${`` expression."""
    depth = 1
    n = len(text)
    while j < n:
        ch = text[j]
        if ch in "'\"":
            j = _quoted_end(text, j)
            continue
        if ch == "`":
            j = _template_end(text, j)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    return n


def _template_end(text: str, i: int) -> int:
    """Return the offset one past the template literal opened at ``i``."""
    j = i + 1
    n = len(text)
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == "`":
            return j + 1
        if ch == "$" and text.startswith("{", j + 1):
            j = _expression_end(text, j + 2)
            continue
        j += 1
    return n


def iter_literal_spans(text: str):
    """Yield ``(start, end)`` spans of comments and string literals."""
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if text.startswith("//", i):
            end = text.find("\n", i)
            end = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
        elif ch in "'\"":
            end = _quoted_end(text, i)
        elif ch == "`":
            end = _template_end(text, i)
        else:
            i += 1
            continue
        yield i, end
        i = end


def blank_literals(text: str) -> str:
    """Return ``text`` with comment and string contents replaced by spaces.

    Offsets and newlines are preserved, so indices into the result are
    indices into the original text.
    """
    chars = list(text)
    for start, end in iter_literal_spans(text):
        for k in range(start, end):
            if chars[k] != "\n":
                chars[k] = " "
    return "".join(chars)


# === Block end detection ===


def _previous_significant(code: str, i: int) -> str:
    j = i - 1
    while j >= 0 and code[j].isspace():
        j -= 1
    return code[j] if j >= 0 else ""


def scan_block_end(code: str, start: int) -> int:
    """Find the end of the group starting at ``start`` in pre-masked code.

    ``code`` must already have literals blanked (see :func:`blank_literals`).
    The body-open delimiter is the first ``{`` directly inside the call's
    argument list that follows ``)`` or ``=>``. Its matching ``}`` closes
    the body; the block then extends to the ``)`` that closes the call and
    over a directly following ``;``.

    Returns:
        Offset one past the end of the block, or ``NOT_FOUND``.
    """
    n = len(code)
    i = start
    paren_depth = 0
    brace_depth = 0
    seen_paren = False
    body_open = NOT_FOUND

    while i < n:
        ch = code[i]
        if ch == "(":
            paren_depth += 1
            seen_paren = True
        elif ch == ")":
            paren_depth -= 1
            if seen_paren and paren_depth <= 0:
                # Argument list closed without a body
                return NOT_FOUND
        elif ch == "{":
            if (
                paren_depth == 1
                and brace_depth == 0
                and _previous_significant(code, i) in (")", ">")
            ):
                body_open = i
                break
            brace_depth += 1
        elif ch == "}":
            brace_depth -= 1
        i += 1

    if body_open == NOT_FOUND:
        return NOT_FOUND

    # Match the body braces
    depth = 1
    i = body_open + 1
    while i < n:
        ch = code[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                break
        i += 1
    else:
        return NOT_FOUND

    # Close the call's argument list (trailing arguments are allowed)
    i += 1
    while i < n:
        ch = code[i]
        if ch == "(":
            paren_depth += 1
        elif ch == ")":
            paren_depth -= 1
            if paren_depth == 0:
                end = i + 1
                if code.startswith(";", end):
                    end += 1
                return end
        i += 1

    return NOT_FOUND


def find_block_end(text: str, start: int) -> int:
    """Find the end offset of the group whose opening token is at ``start``.

    Args:
        text: Full file text.
        start: Offset of the first character of the group-opening token.

    Returns:
        Offset one past the block, or ``NOT_FOUND`` when the block has no
        body or its braces never balance.

    Raises:
        ValueError: If ``start`` is outside ``text``.
    """
    if start < 0 or start >= len(text):
        raise ValueError(f"start offset {start} outside text of length {len(text)}")
    return scan_block_end(blank_literals(text), start)
