"""
A pipeline step: one named verification or build action.

Steps are created during registration and never change afterwards. The
action receives the shared pipeline context and returns a `Result`; for
convenience it may also return ``None`` (plain success) or a string (success
with that detail).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Union

from relverify.core.models import Failure, Skipped, Success

if TYPE_CHECKING:
    from relverify.pipeline.context import Context

ActionResult = Union[Success, Failure, Skipped, str, None]
Action = Callable[["Context"], ActionResult]


@dataclass(frozen=True)
class Step:
    """Immutable step definition.

    Attributes:
        id: Unique identifier, used as the context slot name
        description: Human-readable line for the report and the vote mail
        action: Callable executed once per pipeline run
        requires: Identifiers of steps that must complete first
    """

    id: str
    description: str
    action: Action = field(compare=False)
    requires: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.id:
            raise ValueError("Step id cannot be empty")
        # Accept any iterable of ids but store a tuple
        object.__setattr__(self, "requires", tuple(self.requires))
        if self.id in self.requires:
            raise ValueError(f"Step {self.id} cannot require itself")
