"""
PDF helpers.
"""

import io
from pathlib import Path
from typing import Optional, Union

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError


def page_count(pdf: Union[Path, bytes]) -> Optional[int]:
    """Get page count from a PDF file or PDF bytes, or None if unreadable."""
    try:
        if isinstance(pdf, (bytes, bytearray)):
            reader = PdfReader(io.BytesIO(pdf))
        else:
            reader = PdfReader(str(pdf))
        return len(reader.pages)
    except (PdfReadError, OSError, ValueError):
        return None
