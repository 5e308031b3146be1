"""
Ticket Extractor Interface Contract.

Defines how a photo of a delivery ticket is turned into structured
ticket data. Implementations talk to a vision-capable model.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class ITicketExtractor(ABC):
    """
    Abstract base class for ticket extractors.

    Implementations handle:
    - Loading the ticket image
    - Prompting the model and parsing its JSON answer
    - Normalising values (nulls, numbers with separators)
    - Retrying rate-limited calls
    """

    @abstractmethod
    async def extract(
        self,
        image_url: str,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Extract structured data from a ticket image.

        Args:
            image_url: Public URL of the ticket photo
            correlation_id: Optional request ID for tracing

        Returns:
            Dict with:
                - codigo_tienda, tienda, fecha, orden_compra: str or None
                - productos: list of {clave_articulo, descripcion, costo, peso}
                - subtotal, total: float or None
                - confidence: float between 0.0 and 1.0
                - raw_response: model output after fence stripping

        Raises:
            TicketExtractionError: If the image or the model answer is unusable
            RateLimitedError: If the model stayed rate limited after retries
        """
        pass
