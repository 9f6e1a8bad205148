"""Digest primitives used by the provider signing schemes."""

import hashlib
import hmac
from typing import Union


def _to_bytes(data: Union[str, bytes]) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def sha512_hex(data: Union[str, bytes]) -> str:
    return hashlib.sha512(_to_bytes(data)).hexdigest()


def md5_hex(data: Union[str, bytes]) -> str:
    """MD5 hex digest. Payfast mandates MD5 for its form signature."""
    return hashlib.md5(_to_bytes(data)).hexdigest()


def hmac_sha512_hex(key: Union[str, bytes], data: Union[str, bytes]) -> str:
    """Compute HMAC-SHA512 over the exact bytes given."""
    return hmac.new(_to_bytes(key), _to_bytes(data), hashlib.sha512).hexdigest()
