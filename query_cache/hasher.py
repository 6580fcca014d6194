"""Query hashing for cache keys."""

import hashlib


def derive_key(sql: str, command: str) -> str:
    """
    Generate a deterministic cache key for a query.

    The digest covers the SQL text followed directly by the command, so
    both take part in the key. The command is appended after a ``.`` to
    keep keys readable in logs.

    Args:
        sql: Query text
        command: Result kind (e.g. "exec", "arrow", "json")

    Returns:
        SHA-256 hex digest followed by ".<command>"
    """
    hasher = hashlib.sha256()
    hasher.update(sql.encode("utf-8"))
    hasher.update(command.encode("utf-8"))
    return f"{hasher.hexdigest()}.{command}"
