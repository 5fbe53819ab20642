"""
Document Loader Module

Reads an input document and turns it into a content block for the
Messages API:
- PDF files are embedded as base64 ``document`` blocks
- Images are embedded as base64 ``image`` blocks
- Everything else is sent as text, prefixed with a filename header
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from policyascode.exceptions import DocumentNotFoundError, DocumentReadError

logger = logging.getLogger(__name__)


# Extension -> (content block type, media type)
BINARY_TYPES = {
    ".pdf": ("document", "application/pdf"),
    ".png": ("image", "image/png"),
    ".jpg": ("image", "image/jpeg"),
    ".jpeg": ("image", "image/jpeg"),
    ".gif": ("image", "image/gif"),
    ".webp": ("image", "image/webp"),
}


@dataclass
class DocumentContent:
    """A loaded document, ready to be attached to a request."""
    filename: str
    kind: str  # 'text', 'document' or 'image'
    media_type: str
    text: Optional[str] = None
    data: Optional[str] = None  # base64 payload for binary kinds

    @property
    def is_binary(self) -> bool:
        return self.kind != "text"

    def to_content_block(self) -> Dict[str, Any]:
        """Render as a Messages API content block."""
        if not self.is_binary:
            return {"type": "text", "text": self.text}
        return {
            "type": self.kind,
            "source": {
                "type": "base64",
                "media_type": self.media_type,
                "data": self.data,
            },
        }


class DocumentLoader:
    """Loads policy documents from disk."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def load(self, path: Union[str, Path]) -> DocumentContent:
        """
        Load a document.

        Args:
            path: Path to the document

        Returns:
            DocumentContent

        Raises:
            DocumentNotFoundError: If the path does not exist or is not a file
            DocumentReadError: If the file exists but cannot be read
        """
        path = Path(path)
        if not path.is_file():
            raise DocumentNotFoundError(path)

        filename = path.name
        suffix = path.suffix.lower()

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise DocumentReadError(path, e) from e

        if suffix in BINARY_TYPES:
            kind, media_type = BINARY_TYPES[suffix]
            data = base64.b64encode(raw).decode("ascii")
            logger.debug(f"Loaded {filename} as {kind} ({media_type}, {len(data)} base64 chars)")
            return DocumentContent(
                filename=filename,
                kind=kind,
                media_type=media_type,
                data=data,
            )

        content = raw.decode(self.encoding, errors="replace")
        logger.debug(f"Loaded {filename} as text ({len(content.split())} words)")
        return DocumentContent(
            filename=filename,
            kind="text",
            media_type="text/plain",
            text=f"# {filename}\n\n{content}",
        )


def load_document(path: Union[str, Path]) -> DocumentContent:
    """Convenience function to load a document."""
    loader = DocumentLoader()
    return loader.load(path)
