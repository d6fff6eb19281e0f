from model import (
    Algorithm,
    InvalidConfiguration,
    SimulationRun,
    TaskState,
    TickResult,
    validate_tasks,
    validate_total_ticks,
)
from policies import is_eligible, priority_order
import math


class Scheduler:
    def __init__(self, tasks, algorithm="RM"):
        # Definitions are frozen, only the runtime state is per run
        self.tasks = validate_tasks(tasks)
        self.algorithm = Algorithm.parse(algorithm)
        if self.algorithm is Algorithm.ALL:
            raise InvalidConfiguration("ALL runs every policy, use compare_all_policies()")

        periods = [t.period for t in self.tasks]
        self.hyperperiod = math.lcm(*periods) if periods else 0

    def new_states(self):
        return [TaskState.fresh(t) for t in self.tasks]

    def step(self, tick, states, run):
        """
        Simulates a single tick: picks at most one task, then does the
        deadline bookkeeping for every task. Mutates states and run.
        """
        # 1. Scheduling decision on the state left by the previous tick
        for i in priority_order(self.algorithm, self.tasks, states, tick):
            if is_eligible(self.tasks[i], states[i], tick):
                states[i].scheduled = True
                run.used_ticks += 1
                break

        # 2. Execution and deadlines, in task id order
        batch = []
        for task, state in zip(self.tasks, states):
            is_deadline = (tick - task.release) % task.period == 0 and tick > task.release
            is_release = tick == task.release
            missed = False

            if state.scheduled:
                state.remaining -= 1
                state.last_scheduled = tick

            if is_deadline:
                if state.remaining > 0:
                    missed = True
                    run.deadline_missed += 1
                else:
                    run.deadline_met += 1
                state.remaining = task.duration

            batch.append(TickResult(
                tick=tick,
                task_id=task.id,
                scheduled=state.scheduled,
                is_deadline=is_deadline,
                missed_deadline=missed,
                is_release=is_release,
            ))
            state.scheduled = False
        return batch

    def ticks(self, total_ticks, run=None):
        """
        Lazily yields one batch of TickResult per tick, 1..total_ticks.
        Arguments are checked before the first tick; each call starts from
        fresh task state. Stop iterating to abort the run.
        """
        validate_total_ticks(total_ticks)
        if run is None:
            run = SimulationRun(self.algorithm, total_ticks)
        return self._tick_loop(total_ticks, run)

    def _tick_loop(self, total_ticks, run):
        states = self.new_states()
        for tick in range(1, total_ticks + 1):
            yield self.step(tick, states, run)

    def run(self, total_ticks=None):
        if total_ticks is None:
            total_ticks = self.hyperperiod

        validate_total_ticks(total_ticks)
        print(f"--- Running {self.algorithm.label} Simulation for {total_ticks} ticks ---")

        run = SimulationRun(self.algorithm, total_ticks)
        for batch in self.ticks(total_ticks, run):
            run.history.append(batch)
        return run


def run_simulation(algorithm, tasks, total_ticks):
    return Scheduler(tasks, algorithm).run(total_ticks)


def _ranking_key(result):
    # Undefined hit rates go last
    if result.deadline_hit_rate is None:
        return (1, 0.0)
    return (0, -result.deadline_hit_rate)


def run_all_policies(tasks, total_ticks):
    """One fresh run per policy, in enumeration order."""
    tasks = validate_tasks(tasks)
    validate_total_ticks(total_ticks)
    return [Scheduler(tasks, algorithm).run(total_ticks) for algorithm in Algorithm.policies()]


def rank_runs(runs):
    """Results sorted by hit rate, descending. Ties keep the given order."""
    return sorted((run.to_result() for run in runs), key=_ranking_key)


def compare_all_policies(tasks, total_ticks):
    """Runs every policy on the same task set and ranks them by hit rate."""
    return rank_runs(run_all_policies(tasks, total_ticks))


def simulate(algorithm, tasks, total_ticks):
    """Single run for a policy, ranked comparison for Algorithm.ALL."""
    if Algorithm.parse(algorithm) is Algorithm.ALL:
        return compare_all_policies(tasks, total_ticks)
    return run_simulation(algorithm, tasks, total_ticks)
