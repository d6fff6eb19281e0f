# analysis.py
import math
import pandas as pd

def calculate_utilization(tasks):
    return sum(t.utilization() for t in tasks)

def check_ll_bound(tasks):
    """Liu and Layland Bound for RM: U <= n(2^(1/n) - 1)"""
    n = len(tasks)
    u = calculate_utilization(tasks)
    if n == 0:
        return True, u, 1.0
    bound = n * (2**(1/n) - 1)
    return u <= bound, u, bound

def check_edf_bound(tasks):
    """EDF with implicit deadlines is feasible iff U <= 1"""
    u = calculate_utilization(tasks)
    return u <= 1, u

def hyperperiod(tasks, limit=None):
    """LCM of all periods, optionally capped. 0 for an empty set."""
    periods = [t.period for t in tasks]
    if not periods:
        return 0
    lcm = math.lcm(*periods)
    return min(lcm, limit) if limit else lcm

def results_frame(results):
    """
    One row per policy, in the order given (ranked for comparisons).
    An undefined hit rate stays missing (NaN in the frame), never 0.
    """
    rows = []
    for rank, r in enumerate(results, start=1):
        rows.append({
            "Rank": rank,
            "Algorithm": r.algorithm.label,
            "Deadline_Hit_Rate": r.deadline_hit_rate,
            "Utilization": r.utilization,
            "Used_Ticks": r.used_ticks,
            "Deadlines_Met": r.deadline_met,
            "Deadlines_Missed": r.deadline_missed,
        })
    columns = ["Rank", "Algorithm", "Deadline_Hit_Rate", "Utilization",
               "Used_Ticks", "Deadlines_Met", "Deadlines_Missed"]
    return pd.DataFrame(rows, columns=columns).set_index("Rank")

def history_frame(history):
    """Flattens per-tick batches into a long frame, one row per (tick, task)."""
    records = [
        {
            "Tick": r.tick,
            "Task": r.task_id,
            "Scheduled": r.scheduled,
            "Deadline": r.is_deadline,
            "Missed": r.missed_deadline,
            "Release": r.is_release,
        }
        for batch in history
        for r in batch
    ]
    columns = ["Tick", "Task", "Scheduled", "Deadline", "Missed", "Release"]
    return pd.DataFrame(records, columns=columns)

def task_summary(run):
    """Per-task executed ticks and deadline outcomes of a single run."""
    df = history_frame(run.history)
    if df.empty:
        return pd.DataFrame(columns=["Executed", "Deadlines", "Missed", "Met"])
    summary = df.groupby("Task").agg(
        Executed=("Scheduled", "sum"),
        Deadlines=("Deadline", "sum"),
        Missed=("Missed", "sum"),
    ).astype(int)
    summary["Met"] = summary["Deadlines"] - summary["Missed"]
    return summary
