"""
Document Store.

Keeps uploaded invoice files on disk under generated names, so two
uploads of "facture.pdf" never collide.
"""

import mimetypes
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union

from config import get_config
from invoice_intake.utils.exceptions import DocumentNotFoundError, UnsupportedFileTypeError
from invoice_intake.utils.helpers import ensure_directory, get_file_extension
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_EXTENSIONS = ['.pdf', '.jpg', '.jpeg', '.png', '.gif', '.tiff', '.bmp', '.webp']


class DocumentStore:
    """
    File storage for invoice documents.

    Attributes:
        base_dir: Directory holding the stored files
        allowed_extensions: Lowercase extensions accepted by save()

    Example:
        >>> store = DocumentStore("/tmp/uploads")
        >>> name = store.save(b"%PDF-1.4 ...", "facture.pdf")
        >>> store.read(name)[:4]
        b'%PDF'
    """

    def __init__(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        allowed_extensions: Optional[Iterable[str]] = None,
    ) -> None:
        self.base_dir = ensure_directory(
            base_dir or get_config("paths.upload_dir", "uploads/invoices")
        )
        extensions = allowed_extensions or get_config("storage.allowed_extensions", DEFAULT_EXTENSIONS)
        self.allowed_extensions = [ext.lower() for ext in extensions]

    def _path(self, filename: str) -> Path:
        # Stored names are generated, never user paths.
        return self.base_dir / Path(filename).name

    def save(self, content: bytes, original_name: str) -> str:
        """
        Store a document under a generated name.

        Args:
            content: File bytes.
            original_name: Name the user uploaded, used for its extension.

        Returns:
            The stored filename.

        Raises:
            UnsupportedFileTypeError: If the extension is not allowed.
        """
        extension = get_file_extension(original_name)
        if extension not in self.allowed_extensions:
            raise UnsupportedFileTypeError(extension or original_name, self.allowed_extensions)

        filename = f"{uuid.uuid4().hex}{extension}"
        self._path(filename).write_bytes(content)
        logger.debug(f"Stored {original_name!r} as {filename} ({len(content)} bytes)")
        return filename

    def read(self, filename: str) -> bytes:
        """
        Read a stored document.

        Raises:
            DocumentNotFoundError: If the file is missing or unreadable.
        """
        path = self._path(filename)
        try:
            return path.read_bytes()
        except OSError as e:
            raise DocumentNotFoundError(str(path), str(e))

    def delete(self, filename: str) -> bool:
        """Best-effort removal; returns False when the file could not be deleted."""
        path = self._path(filename)
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not delete stored document {path}: {e}")
            return False
        return True

    @staticmethod
    def guess_mime_type(original_name: str) -> Optional[str]:
        mime_type, _ = mimetypes.guess_type(original_name)
        return mime_type
