"""
Storage key generation.

Storage keys name every asset this service writes, both on local disk and in
the object store. A key is never derived from user input: it is a random
token drawn from the operating system CSPRNG, raw URL-safe base64 encoded so
it is safe as a path segment and an object key, followed by an extension
chosen from the validated media type.
"""

import base64
import secrets

from tubely.utils.file_validator import AssetKind, extension_for


DEFAULT_KEY_BYTES = 9
MIN_KEY_BYTES = 4


def generate_token(num_bytes: int = DEFAULT_KEY_BYTES) -> str:
    """
    Return ``num_bytes`` random bytes as unpadded URL-safe base64.

    9 bytes encode to exactly 12 characters of ``[A-Za-z0-9_-]``.

    Raises:
        ValueError: If ``num_bytes`` is below MIN_KEY_BYTES.
    """
    if num_bytes < MIN_KEY_BYTES:
        raise ValueError(f"num_bytes must be at least {MIN_KEY_BYTES}, got {num_bytes}")
    return base64.urlsafe_b64encode(secrets.token_bytes(num_bytes)).rstrip(b"=").decode("ascii")


def generate_storage_key(
    media_type: str,
    kind: AssetKind,
    num_bytes: int = DEFAULT_KEY_BYTES,
) -> str:
    """
    Mint a fresh storage key such as ``"Q2x1c3RlcjAx.png"``.

    Two calls never coordinate; uniqueness comes from the token's entropy.
    """
    return generate_token(num_bytes) + extension_for(media_type, kind)
