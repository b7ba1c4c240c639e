"""
Exception classes for md-converter.

Defines the error hierarchy shared by the conversion pipeline,
the HTTP service and the CLI.
"""

from typing import Any, Dict, Optional


class MDConverterError(Exception):
    """Base exception for all md-converter errors."""
    
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize MDConverterError.
        
        Args:
            message: Error message
            error_code: Optional error code for categorization
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        
    def __str__(self) -> str:
        """String representation of the error."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message
        
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigError(MDConverterError):
    """Configuration-related errors."""
    pass


class ValidationError(MDConverterError):
    """Invalid conversion request (rejected before the pipeline starts)."""
    pass


class ConversionError(MDConverterError):
    """Fatal failure of a conversion pipeline."""
    
    def __init__(
        self,
        reason: str,
        error_code: Optional[str] = "conversion_failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"Conversion failed: {reason}", error_code, details)
        self.reason = reason


class RenderError(MDConverterError):
    """A single diagram could not be rendered."""
    pass


class RewriteError(MDConverterError):
    """A diagram span no longer matches the document it is applied to."""
    pass


class DependencyError(MDConverterError):
    """Missing external dependency (browser, mmdc, pandoc)."""
    pass


class TimeoutError(MDConverterError):
    """Operation timeout errors."""
    pass
