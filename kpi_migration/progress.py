"""Progress events emitted by the orchestrator at stage boundaries."""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)

TOTAL = 100


class ProgressStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class MigrationProgress:
    step: str
    completed: int
    total: int
    status: ProgressStatus
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "completed": self.completed,
            "total": self.total,
            "status": self.status.value,
            "message": self.message,
        }


ProgressCallback = Callable[[MigrationProgress], None]


class LoggingProgressReporter:
    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, progress: MigrationProgress) -> None:
        level = logging.ERROR if progress.status is ProgressStatus.ERROR else logging.INFO
        self.log.log(level, "[%3d/%d] %s: %s", progress.completed, progress.total,
                     progress.step, progress.message or progress.status.value)


class TqdmProgressReporter:
    """Draws the 0..100 checkpoints as a tqdm bar."""

    def __init__(self, desc: str = "Migrating", **tqdm_kwargs):
        self.bar = tqdm(total=TOTAL, desc=desc, unit="%", **tqdm_kwargs)
        self.last: Optional[MigrationProgress] = None

    def __call__(self, progress: MigrationProgress) -> None:
        self.last = progress
        self.bar.set_postfix_str(progress.step)
        if progress.status is ProgressStatus.ERROR:
            self.bar.write(f"[ERROR] {progress.message}", file=self.bar.fp)
            self.bar.close()
            return
        advance = progress.completed - self.bar.n
        if advance > 0:
            self.bar.update(advance)
        if progress.status is ProgressStatus.COMPLETED:
            self.bar.close()
