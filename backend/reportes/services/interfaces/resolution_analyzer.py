"""
Resolution Analyzer Interface Contract.

Decides whether a driver's chat message says the delivery problem
was solved.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class IResolutionAnalyzer(ABC):
    """
    Abstract base class for chat resolution analysers.

    Implementations never raise: any failure is reported as
    "not resolved" with zero confidence.
    """

    @abstractmethod
    async def analyze(
        self,
        message: str,
        tipo_reporte: Optional[str],
        motivo: Optional[str],
        history: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Analyse a new driver message in the context of the conversation.

        Args:
            message: The new driver message
            tipo_reporte: Report type
            motivo: Reason given by the driver, if any
            history: Previous messages as {sender, text}, oldest first

        Returns:
            Dict with:
                - is_resolved: bool
                - confidence: float between 0.0 and 1.0
                - reasoning: short explanation
        """
        pass
