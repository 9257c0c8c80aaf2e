"""Internal-defect exceptions.

These signal compiler bugs (a violated pipeline invariant), never user
mistakes. Detection misses are ordinary ``None``/``False`` returns and do not
go through this module.
"""

from __future__ import annotations


class InternalError(RuntimeError):
    """Base for internal compiler errors."""

    def __init__(
        self, message: str, pass_name: str | None = None, subtree: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.pass_name = pass_name
        self.subtree = subtree

    def format(self) -> str:
        text = "internal compiler error: "
        if self.pass_name is not None:
            text += "[" + self.pass_name + "] "
        text += self.message
        if self.subtree is not None:
            text += " (" + self.subtree + ")"
        return text

    def __str__(self) -> str:
        return self.format()


class ExtractionError(InternalError):
    """An extractor failed after its paired predicate accepted the subtree."""


class UnhandledNodeError(InternalError):
    """A node shape reached code that has no case for it."""
