"""Selection of the block an incremental update should replace.

Labels derived from block titles are approximate, so matching walks a
cascade of progressively weaker rules and gives up rather than guess when
several blocks remain plausible.
"""

from dataclasses import dataclass
from enum import Enum

from .parser import Block, ParsedFile


@dataclass(frozen=True)
class MatchTarget:
    """The (feature, test name) pair an update is meant to affect."""

    feature: str
    test_name: str


class MatchRule(str, Enum):
    """Rule of the cascade that selected a block, strongest first."""

    EXACT = "exact"
    TEST_LABEL = "test_label"
    FEATURE_LABEL = "feature_label"
    CONTENT = "content"
    SINGLE_BLOCK = "single_block"


_CONFIDENT_RULES = {MatchRule.EXACT, MatchRule.TEST_LABEL, MatchRule.FEATURE_LABEL}


@dataclass(frozen=True)
class BlockMatch:
    """A located block and the cascade rule that selected it."""

    block: Block
    rule: MatchRule

    @property
    def confident(self) -> bool:
        """True when the block was selected by its title labels."""
        return self.rule in _CONFIDENT_RULES


def _references(content: str, name: str) -> bool:
    """Check whether ``name`` is referenced as a call, member or string."""
    content = content.lower()
    return any(
        needle in content
        for needle in (f"{name}(", f"{name}.", f".{name}", f"'{name}'", f'"{name}"')
    )


def match_block(parsed: ParsedFile, feature: str, test_name: str) -> BlockMatch | None:
    """Select the block to replace and report which rule selected it.

    Rules, first hit in file order wins:
    1. feature and test labels both match
    2. test label matches
    3. feature label matches
    4. block body references the test name
    5. the file has exactly one block

    Returns:
        BlockMatch, or None when the target is ambiguous or absent.
    """
    feature_lower = feature.lower()
    test_lower = test_name.lower()
    blocks = parsed.blocks

    for block in blocks:
        if block.feature_label == feature_lower and block.test_label == test_lower:
            return BlockMatch(block, MatchRule.EXACT)

    for block in blocks:
        if block.test_label == test_lower:
            return BlockMatch(block, MatchRule.TEST_LABEL)

    for block in blocks:
        if block.feature_label == feature_lower:
            return BlockMatch(block, MatchRule.FEATURE_LABEL)

    if test_lower:
        for block in blocks:
            if _references(block.content, test_lower):
                return BlockMatch(block, MatchRule.CONTENT)

    if len(blocks) == 1:
        return BlockMatch(blocks[0], MatchRule.SINGLE_BLOCK)

    return None


def find_match(parsed: ParsedFile, feature: str, test_name: str) -> Block | None:
    """Return the block matching ``(feature, test_name)``, or None."""
    match = match_block(parsed, feature, test_name)
    return match.block if match else None
