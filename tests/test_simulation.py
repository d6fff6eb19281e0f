import itertools

import pytest

from model import Algorithm, InvalidConfiguration, SimulationRun, TaskDefinition
from simulation import Scheduler, compare_all_policies, rank_runs, run_all_policies, run_simulation, simulate
from workload import generate_random_tasks


def _scheduled_ticks(run, task_id):
    return [r.tick for batch in run.history for r in batch if r.task_id == task_id and r.scheduled]


def _expected_deadlines(tasks, total_ticks):
    return sum(
        1
        for t in tasks
        for tick in range(1, total_ticks + 1)
        if (tick - t.release) % t.period == 0 and tick > t.release
    )


def test_single_task_fcfs_meets_every_deadline():
    tasks = [TaskDefinition(id=0, duration=2, period=5, release=0)]
    run = run_simulation("FCFS", tasks, 10)
    assert (run.used_ticks, run.deadline_met, run.deadline_missed) == (4, 2, 0)
    assert _scheduled_ticks(run, 0) == [1, 2, 6, 7]
    assert run.deadline_hit_rate == 1.0
    assert run.utilization == 0.4


def test_contention_under_rate_monotonic_misses_first_deadline():
    tasks = [TaskDefinition(0, 3, 4), TaskDefinition(1, 3, 4)]
    run = run_simulation(Algorithm.RM, tasks, 8)
    assert run.used_ticks == 8
    assert run.deadline_met == 2
    assert run.deadline_missed == 2
    # Equal periods keep id order, task 0 runs first every period
    assert _scheduled_ticks(run, 0) == [1, 2, 3, 5, 6, 7]
    tick4 = run.history[3]
    assert [r.missed_deadline for r in tick4] == [False, True]
    assert all(r.is_deadline for r in tick4)


def test_task_scheduled_on_its_deadline_tick_can_meet_it():
    # Last unit of work runs on the deadline tick itself
    tasks = [TaskDefinition(0, 1, 2, release=0), TaskDefinition(1, 2, 4, release=0)]
    run = run_simulation(Algorithm.RM, tasks, 4)
    assert _scheduled_ticks(run, 0) == [1, 3]
    assert _scheduled_ticks(run, 1) == [2, 4]
    assert run.deadline_missed == 0
    assert run.deadline_met == 3


def test_fcfs_keeps_running_the_last_task_while_rr_alternates():
    tasks = [TaskDefinition(0, 2, 10), TaskDefinition(1, 2, 10)]
    fcfs = run_simulation(Algorithm.FCFS, tasks, 4)
    rr = run_simulation(Algorithm.RR, tasks, 4)
    assert _scheduled_ticks(fcfs, 0) == [1, 2]
    assert _scheduled_ticks(fcfs, 1) == [3, 4]
    assert _scheduled_ticks(rr, 0) == [1, 3]
    assert _scheduled_ticks(rr, 1) == [2, 4]


def test_task_is_not_eligible_on_its_release_tick():
    tasks = [TaskDefinition(id=0, duration=1, period=10, release=5)]
    run = run_simulation(Algorithm.EDF, tasks, 10)
    assert _scheduled_ticks(run, 0) == [6]
    releases = [r.tick for batch in run.history for r in batch if r.is_release]
    assert releases == [5]
    # First deadline is release + period
    assert run.deadline_met + run.deadline_missed == 0


@pytest.mark.parametrize("algorithm", Algorithm.policies())
def test_run_invariants_on_random_workloads(algorithm):
    for seed in range(5):
        tasks = generate_random_tasks(6, seed=seed)
        run = run_simulation(algorithm, tasks, 60)

        assert len(run.history) == 60
        busy = 0
        for tick, batch in enumerate(run.history, start=1):
            assert [r.task_id for r in batch] == [t.id for t in tasks]
            assert all(r.tick == tick for r in batch)
            scheduled = sum(r.scheduled for r in batch)
            assert scheduled <= 1
            busy += scheduled
            for r in batch:
                assert not r.missed_deadline or r.is_deadline

        assert run.used_ticks == busy <= run.total_ticks
        assert run.deadline_met + run.deadline_missed == _expected_deadlines(tasks, 60)


@pytest.mark.parametrize("algorithm", Algorithm.policies())
def test_runs_are_deterministic(algorithm):
    tasks = generate_random_tasks(5, seed=42)
    first = run_simulation(algorithm, tasks, 50)
    second = run_simulation(algorithm, tasks, 50)
    assert first == second


def test_ticks_is_lazy_restartable_and_abortable():
    tasks = [TaskDefinition(0, 2, 5), TaskDefinition(1, 1, 3, release=1)]
    scheduler = Scheduler(tasks, "LLF")

    assert list(scheduler.ticks(12)) == list(scheduler.ticks(12))

    partial = SimulationRun(Algorithm.LLF, 12)
    batches = list(itertools.islice(scheduler.ticks(12, partial), 3))
    assert [b[0].tick for b in batches] == [1, 2, 3]
    assert partial.used_ticks == 3
    assert partial.history == []


def test_ticks_checks_arguments_before_iteration():
    scheduler = Scheduler([TaskDefinition(0, 1, 5)], "RR")
    with pytest.raises(InvalidConfiguration):
        scheduler.ticks(0)


def test_run_defaults_to_hyperperiod():
    tasks = [TaskDefinition(0, 1, 4), TaskDefinition(1, 1, 6)]
    run = Scheduler(tasks, "RM").run()
    assert run.total_ticks == 12


@pytest.mark.parametrize("tasks, ticks", [
    ([TaskDefinition(0, 1, 0)], 10),
    ([TaskDefinition(0, 0, 5)], 10),
    ([TaskDefinition(0, 1, 5, release=-2)], 10),
    ([TaskDefinition(0, 1, 5)], 0),
])
def test_invalid_configuration_fails_before_simulating(tasks, ticks):
    with pytest.raises(InvalidConfiguration):
        run_simulation(Algorithm.FCFS, tasks, ticks)
    with pytest.raises(InvalidConfiguration):
        compare_all_policies(tasks, ticks)


def test_single_run_rejects_compare_sentinel():
    with pytest.raises(InvalidConfiguration):
        Scheduler([TaskDefinition(0, 1, 5)], Algorithm.ALL)


def test_hit_rate_undefined_when_no_deadline_is_reached():
    run = run_simulation(Algorithm.EDF, [TaskDefinition(0, 1, 10)], 5)
    assert run.deadline_hit_rate is None
    assert run.used_ticks == 1

    empty = run_simulation(Algorithm.EDF, [], 5)
    assert empty.deadline_hit_rate is None
    assert empty.utilization == 0.0


def test_compare_all_policies_keeps_enumeration_order_on_ties():
    tasks = [TaskDefinition(0, 2, 5)]
    results = compare_all_policies(tasks, 10)
    assert [r.algorithm for r in results] == Algorithm.policies()
    assert all(r.deadline_hit_rate == 1.0 for r in results)
    assert all(r.utilization == 0.4 for r in results)


def test_compare_all_policies_sorts_by_hit_rate_descending():
    for seed in range(5):
        tasks = generate_random_tasks(8, seed=seed)
        results = compare_all_policies(tasks, 80)
        assert len(results) == 5
        assert {r.algorithm for r in results} == set(Algorithm.policies())
        rates = [r.deadline_hit_rate for r in results]
        assert rates == sorted(rates, reverse=True)
        assert all(0.0 <= r <= 1.0 for r in rates)

        # Equal rates keep enumeration order
        positions = {a: i for i, a in enumerate(Algorithm.policies())}
        for a, b in zip(results, results[1:]):
            if a.deadline_hit_rate == b.deadline_hit_rate:
                assert positions[a.algorithm] < positions[b.algorithm]


def test_compare_all_policies_with_no_deadlines_keeps_order():
    results = compare_all_policies([TaskDefinition(0, 1, 10)], 3)
    assert [r.algorithm for r in results] == Algorithm.policies()
    assert all(r.deadline_hit_rate is None for r in results)


def test_compare_matches_individual_runs():
    tasks = generate_random_tasks(6, seed=7)
    by_algorithm = {r.algorithm: r for r in compare_all_policies(tasks, 40)}
    for algorithm in Algorithm.policies():
        assert by_algorithm[algorithm] == run_simulation(algorithm, tasks, 40).to_result()


def test_simulate_dispatches_sentinel():
    tasks = [TaskDefinition(0, 2, 5)]
    assert isinstance(simulate("ALL", tasks, 10), list)
    assert isinstance(simulate("EDF", tasks, 10), SimulationRun)


def test_task_running_on_its_deadline_tick_can_still_miss_it():
    tasks = [TaskDefinition(id=0, duration=3, period=2)]
    run = run_simulation(Algorithm.EDF, tasks, 2)
    tick2 = run.history[1][0]
    assert tick2.scheduled
    assert tick2.is_deadline
    assert tick2.missed_deadline
    assert (run.used_ticks, run.deadline_met, run.deadline_missed) == (2, 0, 1)


def test_run_all_policies_returns_runs_in_enumeration_order():
    tasks = generate_random_tasks(4, seed=2)
    runs = run_all_policies(tasks, 30)
    assert [r.algorithm for r in runs] == Algorithm.policies()
    assert all(len(r.history) == 30 for r in runs)
    assert rank_runs(runs) == compare_all_policies(tasks, 30)
