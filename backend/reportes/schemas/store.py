"""
Pydantic schemas for store validation.
"""

from typing import Optional

from pydantic import BaseModel, Field


class StoreValidateRequest(BaseModel):
    """Store code typed or scanned by the driver (e.g. "50CUE")."""
    codigo_tienda: Optional[str] = Field(default=None, description="Store code")


class StoreResponse(BaseModel):
    id: str
    codigo_tienda: str
    nombre: str
    zona: Optional[str] = None
    direccion: Optional[str] = None
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True


class StoreContactDetails(BaseModel):
    """Contacts of the store as listed by the store directory."""
    responsable_comercial: Optional[str] = None
    celular: Optional[str] = None
    encargado_ejecucion: Optional[str] = None
    movil: Optional[str] = None


class StoreValidateResponse(BaseModel):
    store: StoreResponse
    details: StoreContactDetails
