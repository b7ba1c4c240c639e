"""
Diagram extraction.

Locates fenced diagram blocks in raw Markdown in a single pass.
"""

import re
from functools import lru_cache
from typing import List, Pattern

from md_converter.core.models import DiagramOccurrence

DEFAULT_FENCE_TAG = "mermaid"


@lru_cache(maxsize=16)
def _fence_pattern(fence_tag: str) -> Pattern[str]:
    # Lazy body: an opening fence without a closing one never matches.
    return re.compile(
        r"```" + re.escape(fence_tag) + r"[ \t]*\r?\n(.*?)```",
        re.DOTALL,
    )


def extract_diagrams(markdown: str, fence_tag: str = DEFAULT_FENCE_TAG) -> List[DiagramOccurrence]:
    """
    Find every fenced diagram block in a Markdown document.

    Args:
        markdown: Raw Markdown text
        fence_tag: Info-string that marks a fence as a diagram

    Returns:
        Occurrences in ascending offset order, numbered from 0
    """
    occurrences = []
    for index, match in enumerate(_fence_pattern(fence_tag).finditer(markdown or "")):
        occurrences.append(DiagramOccurrence(
            start=match.start(),
            end=match.end(),
            code=match.group(1).strip(),
            sequence_index=index,
            source=match.group(0),
        ))
    return occurrences
