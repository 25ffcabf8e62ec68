"""Text extraction from fetched document bytes.

:class:`TextExtractionService` picks an extractor by file extension. Plain
text formats are decoded as UTF-8, PDFs go through pdfminer.six, Word files
through python-docx and OpenDocument text is read from its ``content.xml``.
"""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable, Iterable, Mapping
from pathlib import PurePosixPath
from xml.etree import ElementTree

import docx
from pdfminer.high_level import extract_text as pdf_extract_text

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], str]

ODT_TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"
ODT_OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"

PLAIN_TEXT_EXTENSIONS = (".txt", ".md", ".markdown", ".csv", ".json", ".log")


class UnsupportedDocumentError(ValueError):
    """Raised for a file type no extractor is registered for."""


def extract_plain_text(content: bytes) -> str:
    return content.decode("utf-8-sig")


def extract_pdf_text(content: bytes) -> str:
    return pdf_extract_text(io.BytesIO(content))


def extract_docx_text(content: bytes) -> str:
    """Paragraph text followed by table cell text, one block per line."""
    document = docx.Document(io.BytesIO(content))
    lines = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append("\t".join(cells))
    return "\n".join(lines)


def _odt_element_text(element: ElementTree.Element) -> str:
    parts = [element.text or ""]
    for child in element:
        tag = child.tag
        if tag == f"{{{ODT_TEXT_NS}}}s":
            parts.append(" " * int(child.get(f"{{{ODT_TEXT_NS}}}c", "1")))
        elif tag == f"{{{ODT_TEXT_NS}}}tab":
            parts.append("\t")
        elif tag == f"{{{ODT_TEXT_NS}}}line-break":
            parts.append("\n")
        else:
            parts.append(_odt_element_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def extract_odt_text(content: bytes) -> str:
    """Text of every paragraph and heading in the document body."""
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        try:
            xml = archive.read("content.xml")
        except KeyError:
            raise ValueError("ODT file does not contain content.xml") from None

    root = ElementTree.fromstring(xml)
    body = root.find(f".//{{{ODT_OFFICE_NS}}}text")
    if body is None:
        return ""
    wanted = {f"{{{ODT_TEXT_NS}}}p", f"{{{ODT_TEXT_NS}}}h"}
    lines = []
    for element in body.iter():
        if element.tag in wanted:
            text = _odt_element_text(element)
            if text.strip():
                lines.append(text)
    return "\n".join(lines)


def default_extractors() -> dict[str, Extractor]:
    extractors: dict[str, Extractor] = {ext: extract_plain_text for ext in PLAIN_TEXT_EXTENSIONS}
    extractors[".pdf"] = extract_pdf_text
    extractors[".docx"] = extract_docx_text
    extractors[".odt"] = extract_odt_text
    return extractors


class TextExtractionService:
    """Dispatch extraction on the lower-cased file extension.

    Args:
        extractors: Extension to extractor map; defaults to
            :func:`default_extractors`
    """

    def __init__(self, extractors: Mapping[str, Extractor] | None = None) -> None:
        source = default_extractors() if extractors is None else extractors
        self._extractors = {ext.lower(): func for ext, func in source.items()}
        logger.debug("Text extraction supports %s", ", ".join(sorted(self._extractors)))

    @staticmethod
    def _extension(filename: str) -> str:
        return PurePosixPath(filename).suffix.lower()

    @property
    def supported_extensions(self) -> Iterable[str]:
        return sorted(self._extractors)

    def is_supported(self, filename: str) -> bool:
        return self._extension(filename) in self._extractors

    def extract(self, filename: str, content: bytes) -> str:
        """Return the text of *content*.

        Raises:
            UnsupportedDocumentError: If no extractor handles the extension
        """
        extension = self._extension(filename)
        extractor = self._extractors.get(extension)
        if extractor is None:
            raise UnsupportedDocumentError(f"Unsupported file type '{extension or filename}'")
        return extractor(content)
