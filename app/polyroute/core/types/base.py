"""Defines the shared foundation for all routing data structures.

This module provides the base pydantic configuration used by every record the
router produces or consumes, together with the priority and task vocabularies
that drive candidate selection.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# ═══════════════════════════════════════════════════════════════════════════
# BASE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

class CanonicalModel(BaseModel):
    """A base model providing shared configuration for all routing records.

    Configuration:
        frozen: Prevents modification after creation. Mutable provider state
            is expressed by replacing snapshots, never by editing them.
        extra: Rejects unknown fields to prevent data pollution from callers.
        alias_generator: Serializes fields as camelCase on the wire while
            keeping snake_case attributes in Python.
        populate_by_name: Accepts both the snake_case and camelCase spelling.
    """
    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ═══════════════════════════════════════════════════════════════════════════
# PRIORITY
# ═══════════════════════════════════════════════════════════════════════════

Priority = Literal["low", "medium", "high"]

# Higher rank is dispatched first by the request queue.
PRIORITY_RANK: dict[str, int] = {
    "low": 0,
    "medium": 1,
    "high": 2,
}


# ═══════════════════════════════════════════════════════════════════════════
# TASK TYPES
# ═══════════════════════════════════════════════════════════════════════════

class TaskType(str, Enum):
    """Built-in task vocabulary.

    Requests and providers carry open string tags. Only tags in this
    vocabulary may fall back to ``general`` providers when no provider
    declares the tag explicitly; anything else is treated as a
    misconfigured task type.
    """
    GENERAL = "general"
    CODING = "coding"
    ANALYSIS = "analysis"
    CREATIVE = "creative"
    TECHNICAL = "technical"


BUILTIN_TASK_TYPES: frozenset[str] = frozenset(t.value for t in TaskType)


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
