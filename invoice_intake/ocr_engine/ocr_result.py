"""
OCR Result Data Class.

Output of one OCR call on one document. OCR failures are reported
through ``success``/``error`` rather than raised, so the pipeline can
decide what a failed call means for the job.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class OCRResult:
    """
    Result of running OCR on a document.

    Attributes:
        success: False when the backend failed
        text: Raw text, pages joined by newlines
        error: Diagnostic message when success is False
        page_count: Number of pages or images processed
        engine: Backend that produced the result
        processing_time: Wall-clock seconds spent in the backend

    Example:
        >>> result = OCRResult(success=True, text="FACTURE", engine="tesseract")
        >>> result.has_text
        True
    """
    success: bool
    text: str = ""
    error: Optional[str] = None
    page_count: int = 0
    engine: str = ""
    processing_time: float = 0.0

    @property
    def has_text(self) -> bool:
        """True if the text holds anything but whitespace."""
        return bool(self.text and self.text.strip())

    @classmethod
    def failure(cls, error: str, engine: str = "", processing_time: float = 0.0) -> 'OCRResult':
        return cls(success=False, error=error, engine=engine, processing_time=processing_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'text_length': len(self.text or ""),
            'error': self.error,
            'page_count': self.page_count,
            'engine': self.engine,
            'processing_time': round(self.processing_time, 3),
        }
