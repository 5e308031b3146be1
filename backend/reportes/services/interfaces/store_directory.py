"""
Store Directory Interface Contract.

Resolves a store code into the store details kept by the commercial
organisation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IStoreDirectory(ABC):
    """Abstract base class for store directory lookups."""

    @abstractmethod
    async def lookup(self, codigo_tienda: str) -> Dict[str, Any]:
        """
        Look up a store by code.

        Args:
            codigo_tienda: Store code such as "50CUE"

        Returns:
            Dict with:
                - codigo, nombre, plaza, zona: store identity
                - responsable_comercial, celular: commercial owner contact
                - encargado_ejecucion, movil: execution lead contact

        Raises:
            StoreNotFoundError: If the directory does not know the code
            StoreDirectoryError: If the directory could not be reached
        """
        pass
