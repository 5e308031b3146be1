"""
Push Sender Interface Contract.

Delivers one web push message to one browser subscription.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IPushSender(ABC):
    """Abstract base class for web push delivery."""

    @abstractmethod
    async def send(self, subscription_info: Dict[str, Any], payload: Dict[str, Any]) -> None:
        """
        Send a payload to a subscription.

        Args:
            subscription_info: {"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}
            payload: JSON-serialisable notification payload

        Raises:
            PushDeliveryError: If the push service rejected the message.
                Its status_code is 404 or 410 when the subscription is gone.
        """
        pass
