"""Splicing regenerated blocks back into an existing test file."""

from .parser import Block
from .scanner import GROUP_TOKEN


def replace_block(original: str, block: Block, new_content: str) -> str:
    """Replace ``block``'s range in ``original`` with ``new_content``.

    Whitespace at both seams is normalized to a single blank line; all other
    text is kept as is.

    Raises:
        ValueError: If the block range does not fit ``original``.
    """
    if not 0 <= block.start < block.end <= len(original):
        raise ValueError(
            f"block range [{block.start}, {block.end}) outside text of length {len(original)}"
        )

    before = original[: block.start].rstrip()
    after = original[block.end :].lstrip()
    return f"{before}\n\n{new_content}\n\n{after}"


def trim_to_group(generated: str) -> str:
    """Drop anything a generator emitted before the first group token.

    Text without the token is returned stripped and otherwise unchanged.
    """
    text = generated.strip()
    if text.startswith(GROUP_TOKEN):
        return text
    idx = text.find(GROUP_TOKEN)
    if idx == -1:
        return text
    return text[idx:]
