"""
Generate a VAPID key pair for web push.

Prints the two values to put in .env:

    VAPID_PUBLIC_KEY   uncompressed P-256 point, urlsafe base64 (browser applicationServerKey)
    VAPID_PRIVATE_KEY  raw private scalar, urlsafe base64 (accepted by pywebpush)

Usage:
    python scripts/generate_vapid_keys.py
"""

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid01
from py_vapid.utils import b64urlencode


def generate_vapid_keys() -> dict:
    """
    Create a new key pair.

    Returns:
        Dict with public_key and private_key, both urlsafe base64 without padding
    """
    vapid = Vapid01()
    vapid.generate_keys()

    public_raw = vapid.public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private_raw = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")

    return {
        "public_key": b64urlencode(public_raw),
        "private_key": b64urlencode(private_raw),
    }


if __name__ == "__main__":
    keys = generate_vapid_keys()
    print(f"VAPID_PUBLIC_KEY={keys['public_key']}")
    print(f"VAPID_PRIVATE_KEY={keys['private_key']}")
    print("")
    print("Keep the private key secret. Changing keys invalidates existing subscriptions.")
