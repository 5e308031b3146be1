"""
Store validation endpoint.

A driver types or scans the store code; the code is checked against the
external store directory and the store row is created or refreshed.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from reportes.api.dependencies import CurrentUser, DatabaseSession, StoreDirectory
from reportes.repositories.store import StoreRepository
from reportes.schemas.store import (
    StoreValidateRequest,
    StoreValidateResponse,
    StoreResponse,
    StoreContactDetails,
)
from reportes.services.store_directory import (
    StoreNotFoundError,
    StoreDirectoryError,
    is_valid_store_code,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stores/validate", response_model=StoreValidateResponse)
async def validate_store(
    request: StoreValidateRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
    directory: StoreDirectory,
) -> StoreValidateResponse:
    """
    Validate a store code and upsert the store.

    Args:
        request: Body with codigo_tienda (two digits and three capital letters)

    Returns:
        The stored store plus the contacts listed in the directory

    Raises:
        HTTPException 400: Missing or malformed code
        HTTPException 404: Code unknown to the directory
        HTTPException 502: Directory unreachable

    Example:
        POST /api/v1/stores/validate
        {"codigo_tienda": "50CUE"}
    """
    codigo = (request.codigo_tienda or "").strip()

    if not codigo:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Código de tienda requerido",
        )

    if not is_valid_store_code(codigo):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Formato de código inválido. Debe ser 2 números y 3 letras (ej: 50CUE)",
        )

    try:
        found = await directory.lookup(codigo)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreDirectoryError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    store = await StoreRepository(db).upsert(
        codigo_tienda=found["codigo"],
        nombre=found["nombre"],
        zona=found["zona"],
        direccion=found["plaza"],
    )
    await db.commit()

    logger.info(
        "Store validated",
        extra={"user_id": current_user.id, "codigo_tienda": store.codigo_tienda},
    )

    return StoreValidateResponse(
        store=StoreResponse.model_validate(store),
        details=StoreContactDetails(
            responsable_comercial=found["responsable_comercial"],
            celular=found["celular"],
            encargado_ejecucion=found["encargado_ejecucion"],
            movil=found["movil"],
        ),
    )
