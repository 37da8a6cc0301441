import logging
from collections.abc import Callable
from io import BytesIO
from pathlib import PurePosixPath

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def extract_text_plain(data: bytes) -> str:
    """Decode plain text as UTF-8, then Windows-1252, then Latin-1 (which accepts any byte)."""
    for encoding in ("utf-8", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue

    return data.decode("latin-1")


def extract_pdf(data: bytes) -> str:
    """Extract text from a PDF using pdfminer.six."""
    from pdfminer.high_level import extract_text

    return extract_text(BytesIO(data))


def extract_docx(data: bytes) -> str:
    """Extract paragraph text from a DOCX file using python-docx."""
    from docx import Document

    doc = Document(BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs)


# MIME type to extractor mapping
EXTRACTORS: dict[str, Callable[[bytes], str]] = {
    "text/plain": extract_text_plain,
    "text/markdown": extract_text_plain,
    "text/csv": extract_text_plain,
    "application/pdf": extract_pdf,
    DOCX_MIME: extract_docx,
}

# File extension fallbacks
EXTENSION_MIME_MAP = {
    ".txt": "text/plain",
    ".md": "text/plain",
    ".pdf": "application/pdf",
    ".docx": DOCX_MIME,
}


def extract_text(content_type: str | None, data: bytes, filename: str | None = None) -> str:
    """
    Extract plain text from an uploaded CV.

    Args:
        content_type: Stored MIME type of the upload
        data: Raw file bytes
        filename: Original filename, used when the MIME type is unknown

    Returns:
        Extracted text

    Raises:
        ValueError: If the content type is not supported
        Exception: If extraction fails
    """
    # Parameters like "; charset=utf-8" don't affect dispatch
    mime = (content_type or "application/octet-stream").split(";")[0].strip().lower()
    extractor = EXTRACTORS.get(mime)

    # Fall back to extension-based detection
    if not extractor and filename:
        ext = PurePosixPath(filename).suffix.lower()
        fallback_mime = EXTENSION_MIME_MAP.get(ext)
        if fallback_mime:
            extractor = EXTRACTORS.get(fallback_mime)

    if not extractor:
        raise ValueError(f"Unsupported file type: {content_type} for file {filename}")

    try:
        return extractor(data)
    except Exception as e:
        logger.exception(f"Failed to extract content from {filename or mime}: {e}")
        raise
