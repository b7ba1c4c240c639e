"""Mermaid diagram extraction, rendering and substitution."""

from md_converter.core.diagrams.extractor import extract_diagrams
from md_converter.core.diagrams.rewriter import image_markup, rewrite_document

__all__ = [
    "extract_diagrams",
    "image_markup",
    "rewrite_document",
]
