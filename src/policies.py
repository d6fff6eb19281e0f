from model import Algorithm, InvalidConfiguration, TaskDefinition, TaskState


def next_deadline(tick: int, period: int, release: int) -> int:
    """
    Returns the next absolute deadline of a periodic task:
    the smallest release + k * period (k >= 1) that is not before tick.
    """
    if period <= 0:
        raise InvalidConfiguration(f"period must be positive, got {period}")
    # ceil((tick - release) / period), but never the release tick itself
    k = max(1, -(-(tick - release) // period))
    return release + k * period


def laxity(task: TaskDefinition, state: TaskState, tick: int) -> int:
    return next_deadline(tick, task.period, task.release) - state.remaining - tick


# Sort keys, ascending. sorted() is stable so equal keys keep task id order.

def _fcfs_key(task, state, tick):
    # Most recently scheduled first
    return -state.last_scheduled

def _rr_key(task, state, tick):
    return state.last_scheduled

def _rm_key(task, state, tick):
    return task.period

def _edf_key(task, state, tick):
    return (next_deadline(tick, task.period, task.release), -state.last_scheduled)

def _llf_key(task, state, tick):
    return (laxity(task, state, tick), -state.last_scheduled)


PRIORITY_KEYS = {
    Algorithm.FCFS: _fcfs_key,
    Algorithm.RR: _rr_key,
    Algorithm.RM: _rm_key,
    Algorithm.EDF: _edf_key,
    Algorithm.LLF: _llf_key,
}


def priority_order(algorithm, tasks, states, tick):
    """Indices of tasks, highest priority first, for the given tick."""
    key = PRIORITY_KEYS.get(Algorithm.parse(algorithm))
    if key is None:
        raise InvalidConfiguration(f"{algorithm} is not a scheduling policy")
    return sorted(range(len(tasks)), key=lambda i: key(tasks[i], states[i], tick))


def is_eligible(task: TaskDefinition, state: TaskState, tick: int) -> bool:
    return state.remaining > 0 and tick > task.release
