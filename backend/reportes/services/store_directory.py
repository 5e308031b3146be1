"""
Store directory client.

The commercial organisation publishes its store list through an n8n
webhook: POST {"codigo": "50CUE"} answers with a JSON array whose first
element describes the store. Its keys are spreadsheet column headers,
some with embedded newlines.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from reportes.core.config import settings
from reportes.core.retry import retry_with_backoff
from reportes.services.interfaces.store_directory import IStoreDirectory

logger = logging.getLogger(__name__)


STORE_CODE_RE = re.compile(r"^\d{2}[A-Z]{3}$")


class StoreNotFoundError(LookupError):
    """Raised when the directory does not know a store code."""


class StoreDirectoryError(Exception):
    """Raised when the directory cannot be reached or answers garbage."""


def is_valid_store_code(codigo_tienda: Optional[str]) -> bool:
    """Store codes are two digits followed by three uppercase letters (e.g. 50CUE)."""
    return bool(codigo_tienda) and STORE_CODE_RE.match(codigo_tienda) is not None


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value).strip()


def parse_directory_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a webhook row onto store fields.

    Phone numbers may arrive as JSON numbers, so every value is coerced
    to text.

    Example:
        >>> parse_directory_row({"Codigo": "50CUE", "Nombre": "Centro", "Zona": "CDMX"})["nombre"]
        'Centro'
    """
    return {
        "codigo": _text(row.get("Codigo")),
        "nombre": _text(row.get("Nombre")),
        "plaza": _text(row.get("Plaza")),
        "zona": _text(row.get("Zona")),
        "responsable_comercial": _text(row.get("Responsable\n comercial")),
        "celular": _text(row.get("Celular")),
        "encargado_ejecucion": _text(row.get("Encargado Ejecucion\nComercial")),
        "movil": _text(row.get("Móvil")),
    }


class N8nStoreDirectory(IStoreDirectory):
    """Store directory backed by the n8n webhook."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        self.url = url or settings.store_directory_url
        self.timeout = timeout or settings.store_directory_timeout_seconds

    async def lookup(self, codigo_tienda: str) -> Dict[str, Any]:
        """
        Look up a store by code.

        Raises:
            StoreNotFoundError: Non-2xx answer or empty array
            StoreDirectoryError: Network failure or malformed body
        """
        try:
            response = await self._post(codigo_tienda)
        except httpx.HTTPError as e:
            logger.error(
                "Store directory unreachable",
                extra={"codigo_tienda": codigo_tienda, "error": str(e)},
            )
            raise StoreDirectoryError("No se pudo consultar el directorio de tiendas") from e

        if response.status_code >= 400:
            logger.info(
                "Store directory rejected code",
                extra={"codigo_tienda": codigo_tienda, "status_code": response.status_code},
            )
            raise StoreNotFoundError(
                f"Tienda con código {codigo_tienda} no encontrada en el sistema"
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise StoreDirectoryError("Respuesta inválida del directorio de tiendas") from e

        if isinstance(rows, dict):
            rows = [rows]
        if not rows or not isinstance(rows, list) or not isinstance(rows[0], dict):
            raise StoreNotFoundError("Tienda no encontrada")

        store = parse_directory_row(rows[0])
        if not store["codigo"] or not store["nombre"]:
            raise StoreNotFoundError("Tienda no encontrada")

        logger.info(
            "Store found in directory",
            extra={"codigo_tienda": store["codigo"], "zona": store["zona"]},
        )
        return store

    @retry_with_backoff(
        max_retries=2,
        base_delay=0.5,
        max_delay=4.0,
        exceptions=(httpx.TransportError,),
    )
    async def _post(self, codigo_tienda: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.url, json={"codigo": codigo_tienda})
