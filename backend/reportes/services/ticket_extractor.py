"""
Ticket data extraction with an OpenAI-compatible vision model.

Reads the ticket photo from local storage, sends it inline (base64 data
URL) together with the extraction prompt, and normalises the JSON the model returns.

Features:
- Exponential backoff on rate limits and connection errors
- Tolerant parsing (markdown fences, text around the JSON object)
- Number parsing with thousands separators
- Correlation ID logging
"""

import asyncio
import base64
import json
import logging
import re
import uuid
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, APIError, RateLimitError, APIConnectionError

from reportes.core.config import settings
from reportes.prompts import TICKET_EXTRACTION_PROMPT
from reportes.services.interfaces.ticket_extractor import ITicketExtractor
from reportes.services.storage import LocalStorage, StorageError

logger = logging.getLogger(__name__)


class TicketExtractionError(Exception):
    """Raised when a ticket image cannot be read into ticket data."""


class RateLimitedError(TicketExtractionError):
    """Raised when the model provider kept rate limiting after all retries."""


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_MIME_BY_EXTENSION = {
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def detect_mime_type(content_type: Optional[str], url: str) -> str:
    """
    Pick the MIME type to declare for a ticket image.

    A known image Content-Type wins when it names a known image type,
    then the URL extension, then JPEG.
    """
    content_type = (content_type or "").lower()
    for mime in ("image/png", "image/jpeg", "image/webp", "image/gif"):
        if mime in content_type:
            return mime
    if "image/jpg" in content_type:
        return "image/jpeg"

    path = url.lower().split("?", 1)[0]
    for extension, mime in _MIME_BY_EXTENSION.items():
        if path.endswith(extension):
            return mime
    return "image/jpeg"


def extract_json_block(content: str) -> str:
    """
    Strip markdown fences and surrounding prose from a model answer.

    Returns:
        The outermost {...} block, or the stripped content if none found
    """
    content = _FENCE_RE.sub("", content.strip()).strip()
    match = _OBJECT_RE.search(content)
    if match:
        return match.group(0)
    return content


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a number that may come as a string with separators.

    Example:
        >>> parse_number("1,184.97")
        1184.97
        >>> parse_number("n/a") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r"[,\s]", "", value)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _text_or_none(value: Any) -> Optional[str]:
    if value is None or value == "" or value is False:
        return None
    text = str(value).strip()
    return text or None


def _normalize_product(raw: Dict[str, Any]) -> Dict[str, Any]:
    costo = parse_number(raw.get("costo"))
    if costo is None:
        costo = parse_number(raw.get("precio"))
    peso = parse_number(raw.get("peso"))
    if peso is None:
        peso = parse_number(raw.get("uds"))

    return {
        "clave_articulo": str(raw.get("clave_articulo") or raw.get("clave") or "").strip(),
        "descripcion": str(raw.get("descripcion") or raw.get("descripción") or "").strip(),
        "costo": costo if costo is not None else 0.0,
        "peso": peso if peso is not None else 0.0,
    }


def normalize_ticket_data(extracted: Dict[str, Any], raw_response: str = "") -> Dict[str, Any]:
    """
    Normalise the model's JSON into the ticket data shape.

    - Empty identity fields become None
    - Products without an article key are dropped
    - costo falls back to precio, peso to uds
    - Numeric strings such as "1,077.44" are parsed

    Args:
        extracted: Parsed JSON object returned by the model
        raw_response: Model answer kept for troubleshooting

    Returns:
        Normalised ticket data dict
    """
    productos: List[Dict[str, Any]] = []
    raw_products = extracted.get("productos")
    if isinstance(raw_products, list):
        for product in raw_products:
            if isinstance(product, dict) and (product.get("clave_articulo") or product.get("clave")):
                productos.append(_normalize_product(product))

    confidence = parse_number(extracted.get("confidence"))

    return {
        "codigo_tienda": _text_or_none(extracted.get("codigo_tienda")),
        "tienda": _text_or_none(extracted.get("tienda")),
        "fecha": _text_or_none(extracted.get("fecha")),
        "orden_compra": _text_or_none(extracted.get("orden_compra")),
        "productos": productos,
        "subtotal": parse_number(extracted.get("subtotal")),
        "total": parse_number(extracted.get("total")),
        "confidence": confidence if confidence is not None else 0.0,
        "raw_response": raw_response,
    }


def validate_ticket_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check extracted ticket data for missing or implausible fields.

    Args:
        data: Normalised ticket data

    Returns:
        {"is_valid": bool, "errors": [Spanish messages]}

    Example:
        >>> validate_ticket_data({"productos": [], "confidence": 0.3})["errors"][-1]
        'Confianza baja (30%)'
    """
    errors: List[str] = []

    if not data.get("codigo_tienda"):
        errors.append("Código de tienda no encontrado")
    if not data.get("tienda"):
        errors.append("Nombre de tienda no encontrado")
    if not data.get("fecha"):
        errors.append("Fecha no encontrada")
    if not data.get("orden_compra"):
        errors.append("Orden de compra no encontrada")
    if not data.get("productos"):
        errors.append("No se encontraron productos")

    subtotal = data.get("subtotal")
    if subtotal is None or subtotal <= 0:
        errors.append("Subtotal inválido")

    total = data.get("total")
    if total is None or total <= 0:
        errors.append("Total inválido")

    confidence = data.get("confidence") or 0.0
    if confidence < 0.5:
        errors.append(f"Confianza baja ({confidence * 100:.0f}%)")

    return {"is_valid": not errors, "errors": errors}


class OpenRouterTicketExtractor(ITicketExtractor):
    """Ticket extractor backed by an OpenAI-compatible vision model."""

    # Retry configuration
    MAX_RETRIES = 3
    BASE_DELAY = 2.0  # seconds
    MAX_DELAY = 30.0  # seconds

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        storage: Optional[LocalStorage] = None,
    ):
        """
        Initialize the extractor.

        Args:
            client: Preconfigured AsyncOpenAI client (built from settings if None)
            model: Model identifier (defaults to settings.ticket_model)
            storage: Storage the ticket photos were uploaded to
        """
        self.client = client or AsyncOpenAI(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            default_headers={"X-Title": settings.project_name},
        )
        self.model = model or settings.ticket_model
        self.storage = storage or LocalStorage()

    async def extract(
        self,
        image_url: str,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Extract structured data from a ticket image.

        See ITicketExtractor.extract for the returned shape.
        """
        if correlation_id is None:
            correlation_id = str(uuid.uuid4())

        try:
            image_bytes, mime_type = await self._load_image(image_url)
        except StorageError as e:
            raise TicketExtractionError(f"Error al obtener la imagen: {e}") from e
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"

        logger.info(
            "Extracting ticket data",
            extra={
                "correlation_id": correlation_id,
                "model": self.model,
                "mime_type": mime_type,
                "image_bytes": len(image_bytes),
            }
        )

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": TICKET_EXTRACTION_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ]

        response = await self._call_with_retry(messages, correlation_id)

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise TicketExtractionError("No se recibió contenido del modelo")

        json_block = extract_json_block(content)
        try:
            extracted = json.loads(json_block)
        except json.JSONDecodeError as e:
            logger.error(
                "Failed to parse ticket extraction response",
                extra={
                    "correlation_id": correlation_id,
                    "error": str(e),
                    "raw_response": content[:500],
                }
            )
            raise TicketExtractionError(
                "Error al procesar la respuesta de la IA. Formato inválido."
            ) from e

        if not isinstance(extracted, dict):
            raise TicketExtractionError("La respuesta de la IA no es un objeto JSON")

        result = normalize_ticket_data(extracted, raw_response=content)

        logger.info(
            "Ticket data extracted",
            extra={
                "correlation_id": correlation_id,
                "product_count": len(result["productos"]),
                "confidence": result["confidence"],
            }
        )

        return result

    async def _load_image(self, image_url: str) -> tuple[bytes, str]:
        """
        Read the ticket photo behind one of our public media URLs.

        Only URLs under the storage's /media/ prefix are accepted; the
        file is read from disk, capped at settings.max_upload_bytes.

        Raises:
            StorageError: Foreign URL, missing file or oversized image
        """
        bucket, path = self.storage.locate(image_url)
        image_bytes = await self.storage.read(bucket, path, max_bytes=settings.max_upload_bytes)
        return image_bytes, detect_mime_type(None, path)

    async def _call_with_retry(self, messages: List[Dict[str, Any]], correlation_id: str):
        """
        Call the model with exponential backoff.

        Handles:
        - RateLimitError: backoff, then RateLimitedError
        - APIConnectionError: backoff, then TicketExtractionError
        - Other APIErrors: fail immediately as TicketExtractionError
        """
        for attempt in range(self.MAX_RETRIES):
            delay = min(self.BASE_DELAY * (2 ** attempt), self.MAX_DELAY)
            try:
                return await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.1,
                    max_tokens=4000,
                )

            except RateLimitError as e:
                logger.warning(
                    "Rate limit hit, retrying",
                    extra={
                        "correlation_id": correlation_id,
                        "attempt": attempt + 1,
                        "max_retries": self.MAX_RETRIES,
                        "delay": delay,
                        "error": str(e),
                    }
                )
                if attempt == self.MAX_RETRIES - 1:
                    raise RateLimitedError(
                        "Demasiadas solicitudes al servicio de IA. "
                        "Por favor espera unos minutos antes de intentar de nuevo."
                    ) from e
                await asyncio.sleep(delay)

            except APIConnectionError as e:
                logger.warning(
                    "API connection error, retrying",
                    extra={
                        "correlation_id": correlation_id,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "error": str(e),
                    }
                )
                if attempt == self.MAX_RETRIES - 1:
                    raise TicketExtractionError(
                        "No se pudo conectar con el servicio de IA"
                    ) from e
                await asyncio.sleep(delay)

            except APIError as e:
                logger.error(
                    "API error during ticket extraction",
                    extra={"correlation_id": correlation_id, "error": str(e)},
                )
                raise TicketExtractionError(f"Error del servicio de IA: {e}") from e
