"""Tests for extension-based text extraction."""

import io
import zipfile

import docx
import pytest

from docduck.indexing.executor import SyncPlanExecutor
from docduck.indexing.extraction import TextExtractionService, UnsupportedDocumentError
from docduck.indexing.fakes import FakeEmbedder, FakeVectorIndex
from docduck.indexing.planner import IncrementalSyncPlanner
from docduck.providers.fakes import FakeDocumentProvider
from docduck.providers.settings import LocalProviderSettings
from docduck.storage.fakes import FakeIndexedDocumentStore

pytestmark = pytest.mark.timeout(10)


def _docx_bytes(*paragraphs: str) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "left"
    table.rows[0].cells[1].text = "right"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _odt_bytes() -> bytes:
    content = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<office:document-content xmlns:office="urn:oasis:names:tc:opendocument:xmlns:office:1.0" '
        'xmlns:text="urn:oasis:names:tc:opendocument:xmlns:text:1.0">'
        "<office:body><office:text>"
        "<text:h>Title</text:h>"
        "<text:p>Hello<text:s text:c=\"2\"/>world<text:tab/>tabbed</text:p>"
        "<text:p> </text:p>"
        "<text:p>Line<text:line-break/>break</text:p>"
        "</office:text></office:body></office:document-content>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("mimetype", "application/vnd.oasis.opendocument.text")
        archive.writestr("content.xml", content)
    return buffer.getvalue()


def _pdf_bytes(text: str) -> bytes:
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


@pytest.fixture
def extraction() -> TextExtractionService:
    return TextExtractionService()


@pytest.mark.parametrize(
    ("filename", "supported"),
    [("notes.txt", True), ("README.MD", True), ("report.pdf", True), ("memo.docx", True),
     ("draft.odt", True), ("legacy.doc", False), ("letter.rtf", False), ("no_extension", False)],
)
def test_is_supported(extraction: TextExtractionService, filename: str, supported: bool) -> None:
    assert extraction.is_supported(filename) is supported


def test_plain_text_strips_bom(extraction: TextExtractionService) -> None:
    assert extraction.extract("a.txt", "\ufeffhello".encode()) == "hello"


def test_docx_paragraphs_and_tables(extraction: TextExtractionService) -> None:
    text = extraction.extract("memo.docx", _docx_bytes("First paragraph", "Second paragraph"))

    assert text.splitlines() == ["First paragraph", "Second paragraph", "left\tright"]


def test_odt_paragraphs_and_spacing(extraction: TextExtractionService) -> None:
    text = extraction.extract("draft.odt", _odt_bytes())

    assert text == "Title\nHello  world\ttabbed\nLine\nbreak"


def test_odt_without_content_fails(extraction: TextExtractionService) -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("mimetype", "application/vnd.oasis.opendocument.text")

    with pytest.raises(ValueError):
        extraction.extract("draft.odt", buffer.getvalue())


def test_pdf_text(extraction: TextExtractionService) -> None:
    assert "Hello PDF" in extraction.extract("report.pdf", _pdf_bytes("Hello PDF"))


def test_unsupported_extension_raises(extraction: TextExtractionService) -> None:
    with pytest.raises(UnsupportedDocumentError):
        extraction.extract("letter.rtf", b"{\\rtf1 hi}")


def test_custom_extractors_replace_defaults() -> None:
    extraction = TextExtractionService({".LOG": lambda content: content.decode().upper()})

    assert extraction.is_supported("server.log")
    assert not extraction.is_supported("notes.txt")
    assert extraction.extract("server.log", b"ok") == "OK"


@pytest.mark.asyncio
async def test_executor_indexes_office_files_and_skips_unsupported() -> None:
    provider = FakeDocumentProvider(LocalProviderSettings(enabled=True, name="Docs"))
    provider.add_document("memo", "m1", _docx_bytes("Quarterly numbers"), filename="memo.docx")
    provider.add_document("letter", "l1", b"{\\rtf1 hi}", filename="letter.rtf")
    metadata_store = FakeIndexedDocumentStore()
    index = FakeVectorIndex()
    executor = SyncPlanExecutor(FakeEmbedder(), index, metadata_store)
    planner = IncrementalSyncPlanner(metadata_store)

    result = await executor.execute(await planner.plan_provider(provider), provider)

    assert (result.reembedded, result.unsupported, result.failed) == (1, 1, 0)
    assert provider.fetch_calls == ["memo"]
    assert index.chunk_count(provider.key, "memo") == 1
    assert metadata_store.get_tokens(provider.key) == {"memo": "m1"}

    await executor.execute(await planner.plan_provider(provider), provider)
    assert provider.fetch_calls == ["memo"]
