"""
Reversible base64 obfuscation of the stored API key.

This is NOT encryption: anyone holding the stored value can read the key.
It only keeps the key from showing up verbatim in dumps and logs.
"""
import base64
import binascii
import logging

logger = logging.getLogger(__name__)


def obscure_api_key(api_key: str) -> str:
    """Encode a plaintext key the way the settings client stores it"""
    return base64.b64encode(api_key.encode("utf-8")).decode("ascii")


def reveal_api_key(encoded_key: str) -> str:
    """
    Decode a stored key.

    A value that is not valid base64 is assumed to be plaintext already
    and returned unchanged.
    """
    try:
        return base64.b64decode(encoded_key, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning(f"Stored API key is not valid base64, using it as plaintext: {e}")
        return encoded_key
