"""
Local object storage for uploaded images.

Files live under settings.media_directory, one sub-directory per
bucket, and are served by the /media static mount:

    {media_directory}/{bucket}/{path}  ->  {public_base_url}/media/{bucket}/{path}
"""

import asyncio
import logging
import secrets
import time
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote

from reportes.core.config import settings

logger = logging.getLogger(__name__)


EVIDENCE_BUCKET = "evidence"
REPORTES_BUCKET = "reportes"

BUCKETS = (EVIDENCE_BUCKET, REPORTES_BUCKET)

_IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}

_ALLOWED_EXTENSIONS = frozenset(_IMAGE_EXTENSIONS.values()) | {"jpeg", "heif"}


class StorageError(Exception):
    """Raised for unknown buckets or paths escaping the bucket."""


def file_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    """
    Extension to store an upload under.

    The client filename's extension wins when it is an image extension;
    otherwise it is derived from the content type, defaulting to "jpg".
    """
    if filename and "." in filename:
        extension = filename.rsplit(".", 1)[1].lower()
        if extension in _ALLOWED_EXTENSIONS:
            return extension
    return _IMAGE_EXTENSIONS.get((content_type or "").lower(), "jpg")


def evidence_path(reporte_id: str, key: str, extension: str) -> str:
    """Object path of an evidence photo: {reporte_id}/{key}_{millis}.{ext}"""
    return f"{reporte_id}/{key}_{int(time.time() * 1000)}.{extension}"


def chat_image_path(reporte_id: str, extension: str) -> str:
    """Object path of a chat image: chat-images/{reporte_id}/{millis}-{rand}.{ext}"""
    suffix = secrets.token_hex(3)
    return f"chat-images/{reporte_id}/{int(time.time() * 1000)}-{suffix}.{extension}"


class LocalStorage:
    """
    Filesystem-backed bucket storage.

    Attributes:
        root: Directory containing one sub-directory per bucket
        public_base_url: Origin used to build public URLs
    """

    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root = Path(root or settings.media_directory)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise StorageError(f"Bucket desconocido: {bucket}")

        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Ruta inválida: {path}")

        return self.root / bucket / Path(*relative.parts)

    def public_url(self, bucket: str, path: str) -> str:
        """Public URL of a stored object."""
        self._resolve(bucket, path)
        return f"{self.public_base_url}/media/{bucket}/{path}"

    async def save(self, bucket: str, path: str, data: bytes) -> str:
        """
        Store an object, refusing to overwrite.

        Args:
            bucket: Target bucket
            path: Object path inside the bucket (forward slashes)
            data: File content

        Returns:
            Public URL of the stored object

        Raises:
            StorageError: Unknown bucket, unsafe path or existing object
        """
        target = self._resolve(bucket, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as fh:
                fh.write(data)

        try:
            await asyncio.to_thread(_write)
        except FileExistsError as e:
            raise StorageError(f"El archivo ya existe: {path}") from e

        logger.info(
            "Stored upload",
            extra={"bucket": bucket, "path": path, "size_bytes": len(data)},
        )
        return self.public_url(bucket, path)

    def locate(self, url: str) -> tuple[str, str]:
        """
        Split one of this storage's public URLs into (bucket, path).

        Raises:
            StorageError: The URL does not point under {public_base_url}/media/
        """
        prefix = f"{self.public_base_url}/media/"
        if not url or not url.startswith(prefix):
            raise StorageError("La imagen debe provenir del almacenamiento de la aplicación")

        bucket, _, path = unquote(url[len(prefix):].split("?", 1)[0]).partition("/")
        self._resolve(bucket, path)
        return bucket, path

    async def read(self, bucket: str, path: str, max_bytes: Optional[int] = None) -> bytes:
        """
        Read a stored object.

        At most max_bytes + 1 bytes are read, so oversized files are
        rejected without loading them whole.

        Raises:
            StorageError: Unknown bucket, unsafe path, missing or oversized object
        """
        target = self._resolve(bucket, path)
        limit = -1 if max_bytes is None else max_bytes + 1

        def _read() -> bytes:
            with open(target, "rb") as fh:
                return fh.read(limit)

        try:
            data = await asyncio.to_thread(_read)
        except (FileNotFoundError, IsADirectoryError) as e:
            raise StorageError(f"Archivo no encontrado: {path}") from e

        if max_bytes is not None and len(data) > max_bytes:
            raise StorageError("El archivo es demasiado grande")
        return data
