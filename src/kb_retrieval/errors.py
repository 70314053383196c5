"""Exception types raised by the retrieval engine."""

from __future__ import annotations


class KnowledgeRetrievalError(Exception):
    """Base class for errors surfaced by this package."""


class RetrievalError(KnowledgeRetrievalError):
    """A search leg failed and its failure policy is to propagate.

    Callers at the user-facing boundary should treat this the same as an empty
    knowledge base rather than as a server error.
    """

    def __init__(self, message: str, *, leg: str) -> None:
        super().__init__(message)
        self.leg = leg
