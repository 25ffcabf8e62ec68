"""Local filesystem document provider."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import UTC, datetime
from pathlib import Path

from docduck.utils.exceptions import DocumentNotFoundError, SyncError

from .base import BaseDocumentProvider, ProviderDocument
from .mime_types import get_mime_type
from .settings import LocalProviderSettings

logger = logging.getLogger(__name__)

# Office writes "~$name.docx" lock files next to open documents
LOCK_FILE_PREFIX = "~$"


def local_document_address(relative_path: str) -> str:
    """Return the stable address of a file from its root-relative POSIX path."""
    digest = hashlib.sha256(relative_path.encode("utf-8")).hexdigest()
    return f"local_{digest[:16]}"


class LocalDocumentProvider(BaseDocumentProvider):
    """Document provider that reads files below a root directory.

    Addresses are derived from the relative path, so a renamed file shows up
    as one deletion plus one new document. The change token combines the
    modification time in nanoseconds with the file size. Fetches use the
    paths found by the last listing and rescan the tree only on a miss.
    """

    def __init__(self, settings: LocalProviderSettings, registered_at: datetime | None = None) -> None:
        super().__init__(settings, registered_at)
        self.root_path = Path(settings.root_path).expanduser().resolve()
        self._exclude_patterns = tuple(p.lower() for p in settings.exclude_patterns if p)
        self._paths: dict[str, Path] = {}

        if not self.root_path.exists():
            logger.warning("Root path %s for %s does not exist, creating it", self.root_path, self.key)
            self.root_path.mkdir(parents=True, exist_ok=True)
        elif not self.root_path.is_dir():
            raise ValueError(f"Root path must be a directory: {self.root_path}")

    @property
    def recursive(self) -> bool:
        return self._settings.recursive  # type: ignore[union-attr]

    def _is_excluded(self, relative_path: str) -> bool:
        lowered = relative_path.lower()
        return any(pattern in lowered for pattern in self._exclude_patterns)

    def _iter_files(self) -> list[tuple[str, Path]]:
        pattern_iter = self.root_path.rglob("*") if self.recursive else self.root_path.glob("*")
        files: list[tuple[str, Path]] = []
        for path in pattern_iter:
            if not path.is_file():
                continue
            if path.name.startswith(LOCK_FILE_PREFIX):
                continue
            if not self._matches_extension(path.name):
                continue
            relative_path = path.relative_to(self.root_path).as_posix()
            if self._is_excluded(relative_path):
                continue
            files.append((relative_path, path))
        files.sort()
        return files

    def _index_files(self) -> list[tuple[str, str, Path]]:
        """List matching files and remember where each address lives."""
        files = [
            (local_document_address(relative_path), relative_path, path)
            for relative_path, path in self._iter_files()
        ]
        self._paths = {address: path for address, _, path in files}
        return files

    def _scan(self) -> list[ProviderDocument]:
        documents: list[ProviderDocument] = []
        for address, relative_path, path in self._index_files():
            stat = path.stat()
            documents.append(
                self._document(
                    address=address,
                    filename=path.name,
                    change_token=f"{stat.st_mtime_ns}-{stat.st_size}",
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    size_bytes=stat.st_size,
                    mime_type=get_mime_type(path.suffix),
                    relative_path=relative_path,
                )
            )
        return documents

    async def list_documents(self) -> list[ProviderDocument]:
        try:
            documents = await asyncio.to_thread(self._scan)
        except OSError as exc:
            raise SyncError(self.key, f"Failed to list {self.root_path}", original_error=exc) from exc
        logger.debug("Listed %d document(s) from %s", len(documents), self.key)
        return documents

    def _resolve(self, address: str) -> Path:
        path = self._paths.get(address)
        if path is None or not path.is_file():
            path = next((p for a, _, p in self._index_files() if a == address), None)
        if path is None:
            raise DocumentNotFoundError(self.key, address)

        resolved = path.resolve()
        # Symlinks may point outside the root
        try:
            resolved.relative_to(self.root_path)
        except ValueError:
            raise DocumentNotFoundError(self.key, address) from None
        return resolved

    def _read(self, address: str) -> bytes:
        return self._resolve(address).read_bytes()

    async def fetch(self, address: str) -> bytes:
        try:
            return await asyncio.to_thread(self._read, address)
        except DocumentNotFoundError:
            raise
        except OSError as exc:
            raise SyncError(self.key, f"Failed to read document '{address}'", original_error=exc) from exc

    def _additional_info(self) -> dict[str, str]:
        return {
            "root_path": str(self.root_path),
            "recursive": str(self.recursive).lower(),
            "file_extensions": ", ".join(self._settings.file_extensions),
        }
