"""
Document rewriting.

Splices rendered diagram images back into the Markdown source. Spans are
replaced last-to-first so offsets recorded during extraction stay valid
for every occurrence that has not been processed yet.
"""

import base64
from typing import Iterable, Optional, Tuple

from md_converter.core.exceptions import RewriteError
from md_converter.core.models import DiagramOccurrence

Replacement = Tuple[DiagramOccurrence, Optional[str]]


def image_markup(image: bytes, alt: str = "Mermaid Diagram", mime_type: str = "image/png") -> str:
    """Markdown image embed referencing ``image`` as an inline data URI."""
    encoded = base64.b64encode(image).decode("ascii")
    return f"![{alt}](data:{mime_type};base64,{encoded})"


def rewrite_document(markdown: str, replacements: Iterable[Replacement]) -> str:
    """
    Replace diagram spans in ``markdown``.

    Args:
        markdown: The document the occurrences were extracted from
        replacements: ``(occurrence, markup)`` pairs; ``None`` markup keeps
            the original fenced block

    Returns:
        The rewritten document

    Raises:
        RewriteError: If an occurrence's span does not hold its source text
    """
    ordered = sorted(replacements, key=lambda item: item[0].start, reverse=True)

    text = markdown
    for occurrence, markup in ordered:
        if text[occurrence.start:occurrence.end] != occurrence.source:
            raise RewriteError(
                f"Diagram {occurrence.sequence_index} span {occurrence.span} does not match the document",
                error_code="stale_offset",
                details={"span": list(occurrence.span)},
            )
        if markup is None:
            continue
        text = text[:occurrence.start] + markup + text[occurrence.end:]

    return text
