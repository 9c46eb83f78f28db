from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity taken from a validated bearer token.

    ``user_id`` is the token subject as issued by the account service; the
    marketplace treats it as an opaque string and keys purchases and
    progress by it.  ``roles`` is carried for logging only; access to a
    course is decided by purchase or instructor ownership.
    """

    user_id: str
    roles: frozenset[str]
