"""Document (PDF) and image extraction — provider-side OCR.

The file is uploaded to the generative provider, which OCRs it to Markdown,
splits it into topical chunks and writes a summary. pypdf is only used
locally to reject unreadable PDFs early and to record the page count.
"""

from __future__ import annotations

from pathlib import Path

import pypdf
from pypdf.errors import PdfReadError

from notespace.db.models import SourceKind, SourceMetadata
from notespace.errors import UnsupportedMediaTypeError
from notespace.ingest.base import DOCUMENT_TYPES, IMAGE_TYPES, ProviderFileExtractor

_DOCUMENT_PROMPT = """\
OCR this document into Markdown. Write any mathematical symbols, equations \
and expressions in LaTeX. Do not wrap the output in triple backticks.
Split the content into chunks of roughly {min_words}-{max_words} words, each \
covering one semantic theme. The chunks are embedded for retrieval, so "text" \
must hold one string per chunk, never one string per line.
Finally, put a short summary of what the document discusses in "summary"."""

_IMAGE_PROMPT = """\
Extract all text visible in this image (OCR) as Markdown, keeping the reading \
order. Write mathematical notation in LaTeX. If the image contains little or \
no text, describe its content instead.
Split the result into chunks of roughly {min_words}-{max_words} words, one \
string per chunk in "text", and put a one-paragraph summary in "summary"."""


def count_pdf_pages(path: str | Path) -> int:
    """Return the page count of the PDF at *path*.

    Raises:
        UnsupportedMediaTypeError: The file is not a readable PDF.
    """
    try:
        return len(pypdf.PdfReader(str(path)).pages)
    except PdfReadError as exc:
        raise UnsupportedMediaTypeError(f"'{Path(path).name}' is not a readable PDF: {exc}") from exc


class DocumentExtractor(ProviderFileExtractor):
    kind = SourceKind.DOCUMENT
    accepted_types = DOCUMENT_TYPES
    label = "document"
    prompt_template = _DOCUMENT_PROMPT

    def source_metadata(self, path: Path) -> SourceMetadata:
        return SourceMetadata(num_pages=count_pdf_pages(path))


class ImageExtractor(ProviderFileExtractor):
    kind = SourceKind.IMAGE
    accepted_types = IMAGE_TYPES
    label = "image"
    prompt_template = _IMAGE_PROMPT
