# ring_history/exceptions.py
"""Errors raised by the cloud history layer."""


class RingHistoryError(Exception):
    """Base class for errors raised by this package."""


class EntityNotFoundError(RingHistoryError):
    """A camera or location id is unknown to the Ring account."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
