"""
Pydantic schemas for ticket extraction.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TicketExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class TicketProduct(BaseModel):
    clave_articulo: str
    descripcion: str
    costo: float
    peso: float


class TicketData(BaseModel):
    """
    Structured content of an OXXO delivery ticket.

    Attributes:
        codigo_tienda: Store code printed on the ticket
        tienda: Store name
        fecha: Date as printed (DD/MM/YYYY)
        orden_compra: Purchase order number
        productos: Product lines
        subtotal: "TOT GENERAL A VENTA"
        total: "TOTAL COSTO"
        confidence: Model confidence between 0.0 and 1.0
    """
    codigo_tienda: Optional[str] = None
    tienda: Optional[str] = None
    fecha: Optional[str] = None
    orden_compra: Optional[str] = None
    productos: List[TicketProduct] = Field(default_factory=list)
    subtotal: Optional[float] = None
    total: Optional[float] = None
    confidence: float = 0.0
    raw_response: Optional[str] = None


class TicketValidation(BaseModel):
    is_valid: bool
    errors: List[str]


class TicketExtractResponse(BaseModel):
    data: TicketData
    validation: TicketValidation
