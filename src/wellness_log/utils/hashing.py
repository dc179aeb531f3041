"""
Record ID generation utilities.

Record IDs are opaque strings; they only have to be unique within a collection.
"""

import hashlib
import secrets
from datetime import datetime, timezone

from wellness_log.utils.parameters import RecordIDConfig


def generate_record_id(prefix: str, config: RecordIDConfig | None = None) -> str:
    """
    Generate a fresh record ID.

    A random nonce is hashed together with the prefix and the current UTC time,
    so two IDs generated within the same clock tick still differ.

    Args:
        prefix: Collection or kind name mixed into the hash.
        config: Record ID generation configuration.

    Returns:
        Hex string of ``config.length`` characters.
    """
    config = config or RecordIDConfig()

    hash_data = [
        prefix,
        datetime.now(timezone.utc).isoformat(),
        secrets.token_hex(16),
    ]
    hash_string = "|".join(hash_data)

    hash_func = hashlib.new(config.algorithm)
    hash_func.update(hash_string.encode("utf-8"))

    return hash_func.hexdigest()[: config.length]
