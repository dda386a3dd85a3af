"""Exception hierarchy for character assembly.

Every failure the engine can report derives from ChargenError. Errors
caused by bad input also derive from ValueError. Rejected operations
never leave partial state behind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from numenera_chargen.engine.validator import Violation
    from numenera_chargen.models.constants import Step


class ChargenError(Exception):
    """Base class for all character-assembly errors."""


class FormatError(ChargenError, ValueError):
    """A dice formula does not match ``<N>d<S>[(+|-)<M>]``."""

    def __init__(self, formula: str, reason: str = "") -> None:
        self.formula = formula
        detail = f": {reason}" if reason else ""
        super().__init__(f"Malformed dice formula {formula!r}{detail}")


class OverBudget(ChargenError):
    """A purchase would push ledger spend past its cap."""

    def __init__(self, item_id: str, cost: int, remaining: int) -> None:
        self.item_id = item_id
        self.cost = cost
        self.remaining = remaining
        super().__init__(
            f"Cannot buy {item_id!r} for {cost} shins: only {remaining} remaining"
        )


class EmptyLedger(ChargenError):
    """Undo was requested on a ledger with no purchases."""

    def __init__(self) -> None:
        super().__init__("No purchases to remove")


class InvariantViolation(ChargenError, ValueError):
    """One or more character rules are broken.

    ``violations`` holds every blocking violation found (never just the
    first). ``code`` and ``step`` describe the earliest offending step so a
    caller can route the user back there.
    """

    def __init__(self, violations: list[Violation]) -> None:
        if not violations:
            raise ValueError("InvariantViolation requires at least one violation")
        self.violations = list(violations)
        ordered = sorted(
            self.violations,
            key=lambda v: int(v.step) if v.step is not None else 0,
        )
        first = ordered[0]
        self.code = first.code
        self.step: Step | None = first.step
        if len(self.violations) == 1:
            msg = first.message
        else:
            msg = f"{first.message} (+{len(self.violations) - 1} more)"
        super().__init__(f"[{first.code}] {msg}")


class StepOrderError(ChargenError, ValueError):
    """An operation was attempted at a step where it is not allowed."""

    def __init__(self, message: str, current: Step | None = None) -> None:
        self.current = current
        super().__init__(message)


class SessionConsumed(ChargenError):
    """The assembly session was already finalized into a CharacterSheet."""

    def __init__(self) -> None:
        super().__init__("Assembly session already finalized; start a new one")


class CatalogError(ChargenError, ValueError):
    """The data catalog is inconsistent and must not be used."""

    def __init__(self, message: str, violations: list[Violation] | None = None) -> None:
        self.violations = list(violations or [])
        super().__init__(message)


class DuplicateId(CatalogError):
    """Two records in one catalog category share an identifier."""


class ReferenceNotFound(CatalogError):
    """A catalog record references an identifier that does not exist."""


class CorruptData(ChargenError, ValueError):
    """A persisted character could not be decoded."""


class PersistenceError(ChargenError):
    """Writing or reading a persisted character failed."""

    def __init__(self, message: str, path: object = None) -> None:
        self.path = path
        super().__init__(message)
