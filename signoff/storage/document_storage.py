import hashlib
import re
from pathlib import Path

from signoff.storage.exceptions import StorageError

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def file_hash(content: bytes) -> str:
    """SHA-256 hex digest used as the content address of a signed document."""
    return hashlib.sha256(content).hexdigest()


def _safe_segment(value: str) -> str:
    cleaned = _UNSAFE.sub("_", value).strip("._")
    return cleaned or "unknown"


class DocumentStorage:
    """Durable filesystem storage for signed documents and zone snippets.

    Layout under files_root:
        signed/{sha256}.pdf
        snippets/{sender_key}/{sha256[:16]}-{identifier|none}.png

    Returned refs are paths relative to files_root.
    """

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def save_document(self, content: bytes) -> str:
        """Store document bytes; saving the same bytes twice is a no-op."""
        if not content:
            raise StorageError("Refusing to store an empty document")
        ref = f"signed/{file_hash(content)}.pdf"
        path = self._files_root / ref
        if path.exists():
            return ref
        self._write(path, content)
        return ref

    def save_snippet(self, png: bytes, *, sender_key: str, content_hash: str, identifier: str | None) -> str:
        if not png:
            raise StorageError("Refusing to store an empty snippet")
        name = f"{content_hash[:16]}-{_safe_segment(identifier) if identifier else 'none'}.png"
        ref = f"snippets/{_safe_segment(sender_key)}/{name}"
        self._write(self._files_root / ref, png)
        return ref

    def load(self, ref: str) -> bytes:
        """Read a stored object back.

        Raises:
            StorageError: if the ref escapes files_root or cannot be read.
        """
        path = self._resolve(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {ref}: {exc}") from exc

    def exists(self, ref: str) -> bool:
        return self._resolve(ref).is_file()

    def _resolve(self, ref: str) -> Path:
        root = self._files_root.resolve()
        path = (root / ref).resolve()
        if not path.is_relative_to(root):
            raise StorageError(f"Ref escapes storage root: {ref}")
        return path

    @staticmethod
    def _write(path: Path, content: bytes) -> None:
        tmp = path.with_suffix(path.suffix + ".part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(content)
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
