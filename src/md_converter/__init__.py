"""
md-converter - Markdown to HTML, PDF and DOCX conversion service.

Renders inline Mermaid diagrams to images for paginated formats and
reports conversion progress to any number of subscribers.
"""

__version__ = "1.0.0"
__description__ = "Markdown to HTML/PDF/DOCX conversion service with Mermaid diagram rendering"

# Public API
from md_converter.core.exceptions import ConversionError, MDConverterError, ValidationError
from md_converter.core.models import ConversionOptions, ConversionResult, OutputFormat

__all__ = [
    "__version__",
    "__description__",
    "MDConverterError",
    "ConversionError",
    "ValidationError",
    "ConversionOptions",
    "ConversionResult",
    "OutputFormat",
]
