"""Experiment data models and types."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ExperimentStatus(Enum):
    """Training run status as reported by the service."""

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    RUNNING = "running"
    COMPLETED = "completed"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_success(self) -> bool:
        return self in (ExperimentStatus.COMPLETED, ExperimentStatus.SUCCESS)

    @classmethod
    def parse(cls, value: Any) -> "ExperimentStatus | None":
        """Parse a wire status, returning None for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_STATUS_RANK = {
    ExperimentStatus.SUBMITTED: 0,
    ExperimentStatus.PROCESSING: 1,
    ExperimentStatus.RUNNING: 1,
    ExperimentStatus.COMPLETED: 2,
    ExperimentStatus.SUCCESS: 2,
    ExperimentStatus.FAILED: 2,
}

TERMINAL_STATUSES = frozenset(
    {ExperimentStatus.COMPLETED, ExperimentStatus.SUCCESS, ExperimentStatus.FAILED}
)


def advance_status(
    current: ExperimentStatus | None, incoming: ExperimentStatus | None
) -> ExperimentStatus | None:
    """Return the status after observing ``incoming``.

    Statuses only move forward: lower-ranked observations are ignored and a
    terminal status is never replaced.
    """
    if incoming is None:
        return current
    if current is None:
        return incoming
    if current.is_terminal or incoming.rank < current.rank:
        return current
    return incoming


class TrainingType(Enum):
    """How an experiment was trained."""

    AUTOML = "automl"
    CUSTOM = "custom"


class AutoMLEngine(Enum):
    """Remote AutoML backends."""

    MLJAR = "mljar"
    H2O = "h2o"
    AUTOKERAS = "autokeras"

    @property
    def label(self) -> str:
        return {"mljar": "MLJAR", "h2o": "H2O", "autokeras": "AutoKeras"}[self.value]


@dataclass(frozen=True)
class ExperimentFile:
    """A visualization or model artifact attached to an experiment."""

    file_id: str | None
    file_type: str
    file_url: str
    file_name: str | None = None
    created_at: str | None = None

    @property
    def is_image(self) -> bool:
        return (self.file_url or "").lower().endswith((".png", ".jpg", ".jpeg", ".svg"))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExperimentFile":
        return cls(
            file_id=data.get("file_id"),
            file_type=data.get("file_type") or "",
            file_url=data.get("file_url") or "",
            file_name=data.get("file_name"),
            created_at=data.get("created_at"),
        )
