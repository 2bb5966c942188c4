"""Shared pipeline context with append-only per-step output slots."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from relverify.core.config import VerifyConfig

# Step currently executing on this thread; set by the collector
_current_step: ContextVar[Optional[str]] = ContextVar("relverify_current_step", default=None)


@dataclass
class Context:
    """State threaded through every step of a verification run.

    Attributes:
        working_dir: Directory for downloads, checkouts and logs
        config: Run configuration
        inputs: Values resolved before the run (URL, versions, directories)
        outputs: One slot per step id; a step only ever writes its own slot
    """

    working_dir: Path
    config: VerifyConfig = field(default_factory=VerifyConfig.default)
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # Slot binding

    @contextmanager
    def bind(self, step_id: str) -> Iterator[Dict[str, Any]]:
        """Make `step_id` the writable slot for the current thread."""
        if step_id in self.outputs:
            raise KeyError(f"Output slot for step '{step_id}' already exists")
        slot: Dict[str, Any] = {}
        self.outputs[step_id] = slot
        token = _current_step.set(step_id)
        try:
            yield slot
        finally:
            _current_step.reset(token)

    @property
    def current_step(self) -> Optional[str]:
        return _current_step.get()

    # Writes

    def put(self, key: str, value: Any) -> None:
        step_id = self.current_step
        if step_id is None:
            raise RuntimeError("Context.put called outside of a running step")

        slot = self.outputs[step_id]
        if key in slot:
            raise KeyError(f"Output key '{key}' already set by step '{step_id}'")
        if value is None:
            raise KeyError("Output value cannot be None")

        slot[key] = value

    # Reads

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.inputs:
            return self.inputs[key]
        # Dicts keep insertion order, so slots are searched in execution start order
        for slot in list(self.outputs.values()):
            if key in slot:
                return slot[key]
        return default

    def require(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(f"Required key '{key}' not found in context")
        return value

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def output(self, step_id: str, key: str, default: Any = None) -> Any:
        return self.outputs.get(step_id, {}).get(key, default)

    # Paths

    def path(self, key: str) -> Path:
        return Path(self.require(key))
