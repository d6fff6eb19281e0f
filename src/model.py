import dataclasses
import enum
from typing import Optional


class InvalidConfiguration(ValueError):
    """Raised when a task set or run parameter cannot be simulated."""


class Algorithm(enum.Enum):
    FCFS = "FCFS"
    RR = "RR"
    RM = "RM"
    EDF = "EDF"
    LLF = "LLF"
    ALL = "ALL"  # not a policy, runs the comparison

    @classmethod
    def parse(cls, value):
        """Accepts a member, its name ("EDF") or its position (3)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
            raise InvalidConfiguration(f"Unknown algorithm index {value}")
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidConfiguration(f"Unknown algorithm {value!r}") from None

    @classmethod
    def policies(cls):
        return [a for a in cls if a is not cls.ALL]

    @property
    def label(self):
        return self.value


@dataclasses.dataclass(frozen=True)
class TaskDefinition:
    id: int
    duration: int  # execution time needed per period
    period: int    # distance between deadlines
    release: int = 0  # eligible from release + 1

    def utilization(self):
        return self.duration / self.period


@dataclasses.dataclass
class TaskState:
    remaining: int
    last_scheduled: int = 0
    scheduled: bool = False

    @classmethod
    def fresh(cls, task: TaskDefinition):
        return cls(remaining=task.duration)


@dataclasses.dataclass(frozen=True)
class TickResult:
    tick: int
    task_id: int
    scheduled: bool
    is_deadline: bool
    missed_deadline: bool
    is_release: bool


def _hit_rate(met, missed) -> Optional[float]:
    if met + missed == 0:
        return None  # no deadline fell inside the run
    return met / (met + missed)


@dataclasses.dataclass
class SimulationRun:
    algorithm: Algorithm
    total_ticks: int
    used_ticks: int = 0
    deadline_met: int = 0
    deadline_missed: int = 0
    history: list = dataclasses.field(default_factory=list)  # one list of TickResult per tick

    @property
    def deadline_hit_rate(self):
        return _hit_rate(self.deadline_met, self.deadline_missed)

    @property
    def utilization(self):
        return self.used_ticks / self.total_ticks

    def to_result(self):
        return SimResult(
            algorithm=self.algorithm,
            deadline_hit_rate=self.deadline_hit_rate,
            utilization=self.utilization,
            used_ticks=self.used_ticks,
            deadline_met=self.deadline_met,
            deadline_missed=self.deadline_missed,
        )


@dataclasses.dataclass(frozen=True)
class SimResult:
    algorithm: Algorithm
    deadline_hit_rate: Optional[float]
    utilization: float
    used_ticks: int = 0
    deadline_met: int = 0
    deadline_missed: int = 0


def _check_int(name, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")


def validate_tasks(tasks):
    """Checks every definition and returns them ordered by id."""
    seen = set()
    for task in tasks:
        for field in ("id", "duration", "period", "release"):
            _check_int(f"Task {task.id} {field}", getattr(task, field))
        if task.id < 0:
            raise InvalidConfiguration(f"Task id must be non-negative, got {task.id}")
        if task.id in seen:
            raise InvalidConfiguration(f"Duplicate task id {task.id}")
        seen.add(task.id)
        if task.period <= 0:
            raise InvalidConfiguration(f"Task {task.id}: period must be positive, got {task.period}")
        if task.duration <= 0:
            raise InvalidConfiguration(f"Task {task.id}: duration must be positive, got {task.duration}")
        if task.release < 0:
            raise InvalidConfiguration(f"Task {task.id}: release must be non-negative, got {task.release}")
    return sorted(tasks, key=lambda t: t.id)


def validate_total_ticks(total_ticks):
    _check_int("total_ticks", total_ticks)
    if total_ticks <= 0:
        raise InvalidConfiguration(f"total_ticks must be positive, got {total_ticks}")
    return total_ticks
