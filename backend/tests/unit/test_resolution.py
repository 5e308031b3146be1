"""
Unit tests for the chat resolution analyser.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from reportes.services.resolution import OpenRouterResolutionAnalyzer


def analyzer_returning(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        client.chat.completions.create = AsyncMock(
            return_value=MagicMock(choices=[MagicMock(message=MagicMock(content=content))])
        )
    return OpenRouterResolutionAnalyzer(client=client, model="test/chat"), client


@pytest.mark.asyncio
class TestResolutionAnalyzer:

    async def test_confident_resolution(self):
        analyzer, _ = analyzer_returning(
            json.dumps({"isResolved": True, "confidence": 0.92, "reasoning": "Confirma entrega"})
        )

        result = await analyzer.analyze("Ya quedó, gracias", "entrega", None, [])

        assert result == {"is_resolved": True, "confidence": 0.92, "reasoning": "Confirma entrega"}

    async def test_low_confidence_is_never_resolved(self):
        analyzer, _ = analyzer_returning(
            '```json\n{"isResolved": true, "confidence": 0.6, "reasoning": "Ambiguo"}\n```'
        )

        result = await analyzer.analyze("ok", "entrega", None, [])

        assert result["is_resolved"] is False
        assert result["confidence"] == 0.6

    async def test_only_last_five_messages_are_sent(self):
        analyzer, client = analyzer_returning(json.dumps({"isResolved": False, "confidence": 0.1}))
        history = [{"sender": "user", "text": f"m{i}"} for i in range(8)]

        await analyzer.analyze("nuevo", "faltante", "Faltan 2 cajas", history)

        user_message = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        payload = json.loads(user_message)
        assert [m["text"] for m in payload["chatHistory"]] == ["m3", "m4", "m5", "m6", "m7"]
        assert payload["motivo"] == "Faltan 2 cajas"
        assert payload["newMessage"] == "nuevo"

    async def test_failure_means_not_resolved(self):
        analyzer, _ = analyzer_returning(error=RuntimeError("network down"))

        result = await analyzer.analyze("ya", "entrega", None, [])

        assert result["is_resolved"] is False
        assert result["confidence"] == 0.0

    async def test_invalid_json_means_not_resolved(self):
        analyzer, _ = analyzer_returning("no es json")

        result = await analyzer.analyze("ya", "entrega", None, [])

        assert result["is_resolved"] is False
