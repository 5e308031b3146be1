"""
Chat resolution analysis.

Asks an OpenAI-compatible chat model whether the driver's latest message
means the delivery problem was solved. A positive answer below the
confidence threshold is downgraded to "not resolved", and any failure
is reported as not resolved.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from reportes.core.config import settings
from reportes.prompts import RESOLUTION_ANALYSIS_PROMPT
from reportes.services.interfaces.resolution_analyzer import IResolutionAnalyzer
from reportes.services.ticket_extractor import extract_json_block

logger = logging.getLogger(__name__)


# Minimum confidence before a message counts as resolving the reporte
RESOLUTION_CONFIDENCE_THRESHOLD = 0.7

# Messages of history sent with the new message
HISTORY_WINDOW = 5

NOT_RESOLVED_ON_ERROR = {
    "is_resolved": False,
    "confidence": 0.0,
    "reasoning": "Error al analizar el mensaje",
}


class OpenRouterResolutionAnalyzer(IResolutionAnalyzer):
    """Resolution analyser backed by an OpenAI-compatible chat model."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            default_headers={"X-Title": settings.project_name},
        )
        self.model = model or settings.resolution_model

    async def analyze(
        self,
        message: str,
        tipo_reporte: Optional[str],
        motivo: Optional[str],
        history: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Analyse a driver message.

        Args:
            message: The new driver message
            tipo_reporte: Report type
            motivo: Reason given by the driver, if any
            history: Previous messages as {sender, text}, oldest first.
                Only the last five are sent.

        Returns:
            Dict with is_resolved, confidence and reasoning
        """
        user_content = json.dumps(
            {
                "tipoReporte": tipo_reporte,
                "motivo": motivo,
                "chatHistory": [
                    {"sender": m.get("sender"), "text": m.get("text")}
                    for m in history[-HISTORY_WINDOW:]
                ],
                "newMessage": message,
            },
            ensure_ascii=False,
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": RESOLUTION_ANALYSIS_PROMPT},
                    {"role": "user", "content": user_content},
                ],
                temperature=0.1,
                max_tokens=200,
            )

            content = response.choices[0].message.content
            if not content:
                raise ValueError("Empty response from model")

            analysis = json.loads(extract_json_block(content))
            confidence = float(analysis.get("confidence") or 0.0)
            is_resolved = bool(analysis.get("isResolved"))

            # Never mark as resolved with low confidence
            if confidence < RESOLUTION_CONFIDENCE_THRESHOLD:
                is_resolved = False

            result = {
                "is_resolved": is_resolved,
                "confidence": confidence,
                "reasoning": analysis.get("reasoning") or "Sin análisis",
            }

        except Exception as e:
            logger.warning(
                "Resolution analysis failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return dict(NOT_RESOLVED_ON_ERROR)

        logger.info(
            "Resolution analysis completed",
            extra={
                "model": self.model,
                "is_resolved": result["is_resolved"],
                "confidence": result["confidence"],
            }
        )
        return result
