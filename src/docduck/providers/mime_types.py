"""File extension to MIME type lookup."""

import mimetypes

MIME_TYPES: dict[str, str] = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".rtf": "application/rtf",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".html": "text/html",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(filename_or_extension: str) -> str:
    """Return the MIME type for a file name or an extension like ``.pdf``."""
    value = filename_or_extension.strip().lower()
    extension = value if value.startswith(".") and value.count(".") == 1 else None
    if extension is None:
        dot = value.rfind(".")
        extension = value[dot:] if dot >= 0 else ""
    if extension in MIME_TYPES:
        return MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(f"file{extension}")
    return guessed or DEFAULT_MIME_TYPE
