"""
Shared type definitions.

Core data structures used across modules.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from urchin.core.typing import JSONDict

DEFAULT_SKILL_SCORE = 50


@dataclass
class ActionResult:
    """Result of an executed tool."""

    success: bool
    data: Any = None
    error: str | None = None

    def to_payload(self) -> Any:
        """Payload rendered into the conversation: data on success, {error} otherwise."""
        if not self.success:
            return {"error": self.error or "Unknown error"}
        return self.data


@dataclass
class ToolJob:
    """A tool invocation requested by the model."""

    name: str
    parameter: str = ""


@dataclass
class RelevanceCandidate:
    """Memory entry ranked against the current input."""

    key: str
    value: Any
    score: float


@dataclass
class PageContext:
    """Page the user is looking at when sending the message (host-provided)."""

    url: str = ""
    title: str = ""
    selection: str = ""
    visible_text: str = ""


@dataclass
class CapturedItem:
    """A piece of context the user captured explicitly (e.g. a snippet or link)."""

    type: str
    value: str


@dataclass
class Skill:
    """Learned behavioral directive with an adaptive score.

    Scores move by exponential smoothing after each evaluation and
    low-value skills are pruned by the maintenance job.
    """

    name: str
    instruction: str
    score: int = DEFAULT_SKILL_SCORE
    usage_count: int = 0
    last_used_at: datetime | None = None
    eval_count: int = 0
    last_eval_at: datetime | None = None
    learned_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> JSONDict:
        """Serialize skill for JSON storage."""
        return {
            "name": self.name,
            "instruction": self.instruction,
            "score": self.score,
            "usage_count": self.usage_count,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "eval_count": self.eval_count,
            "last_eval_at": self.last_eval_at.isoformat() if self.last_eval_at else None,
            "learned_at": self.learned_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> "Skill":
        """Deserialize skill from dictionary."""
        data = data.copy()
        for key in ("last_used_at", "last_eval_at", "learned_at"):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
        if data.get("learned_at") is None:
            data.pop("learned_at", None)
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class StepLog:
    """Diagnostics for one loop iteration."""

    step: int
    raw_length: int
    tool_names: list[str] = field(default_factory=list)


@dataclass
class ExecutionLog:
    """Per-request diagnostics."""

    steps: list[StepLog] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None

    @property
    def duration(self) -> float | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time


@dataclass
class RequestResult:
    """Outcome of one request through the reasoning loop."""

    answer: str
    log: ExecutionLog
    request_id: str
    exhausted: bool = False
    active_skills: list[str] = field(default_factory=list)
