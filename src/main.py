import argparse
import csv
import sys
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.lines as mlines

from model import Algorithm, InvalidConfiguration, SimulationRun, TaskDefinition, validate_tasks, validate_total_ticks
from analysis import calculate_utilization, check_edf_bound, check_ll_bound, hyperperiod, results_frame, task_summary
from simulation import rank_runs, run_all_policies, run_simulation
from workload import generate_random_tasks

from pathlib import Path
BASE_DIR = Path(__file__).resolve().parent.parent
TASKSETS_DIR = BASE_DIR / "tasksets"
RESULTPLOTS_DIR = BASE_DIR / "resultplots"
DEFAULT_TASK_FILE = TASKSETS_DIR / "example_taskset.csv"

# Tick count used when none is given and the hyperperiod is huge
MAX_AUTO_TICKS = 2000

def load_tasks_from_csv(filename):
    tasks = []
    try:
        # utf-8-sig strips the BOM spreadsheet tools like to add
        with open(filename, 'r', encoding='utf-8-sig') as f:
            reader = csv.DictReader(f, skipinitialspace=True)
            for row in reader:
                # Trailing lines without a task id
                if not row.get('Task'): continue

                tasks.append(TaskDefinition(
                    id=int(row['Task']),
                    duration=int(row['Duration']),
                    period=int(row['Period']),
                    release=int(row.get('Release') or 0)
                ))
    except FileNotFoundError:
        print(f"CSV not found: {filename}")
        tasks = []
    except KeyError as e:
        print(f"Error parsing CSV: Missing column {e}")
        tasks = []
    except (ValueError, TypeError) as e:
        # Short rows leave missing columns as None
        print(f"Error parsing CSV value: {e}")
        tasks = []
    return tasks

def _percent(value):
    if value is None:
        return "n/a"
    return f"{round(100 * value, 1)}%"

def format_results(outcome):
    """Text report for a single run or for a ranked comparison."""
    if isinstance(outcome, SimulationRun):
        lines = [
            f"Deadlines Met: {_percent(outcome.deadline_hit_rate)}",
            f"CPU Usage: {_percent(outcome.utilization)}",
        ]
    else:
        lines = ["Algorithm Comparison:"]
        for result in outcome:
            lines.append(
                f"{result.algorithm.label}: {_percent(result.deadline_hit_rate)} met, "
                f"{_percent(result.utilization)} usage"
            )
    return "\n".join(lines)

def _merge_blocks(run, task_id):
    """Consecutive executed ticks of one task as (start, length) bars."""
    blocks = []
    for batch in run.history:
        for r in batch:
            if r.task_id != task_id or not r.scheduled:
                continue
            # Tick t occupies the interval [t - 1, t]
            if blocks and blocks[-1][0] + blocks[-1][1] == r.tick - 1:
                start, length = blocks[-1]
                blocks[-1] = (start, length + 1)
            else:
                blocks.append((r.tick - 1, 1))
    return blocks

def plot_timeline(run, tasks, output_dir=RESULTPLOTS_DIR):
    fig, ax = plt.subplots(figsize=(12, max(3, len(tasks) * 0.8)))

    colors = plt.get_cmap('tab10')
    for row, task in enumerate(tasks):
        ax.broken_barh(_merge_blocks(run, task.id), (row * 10, 9), facecolors=colors(row % 10))

    # Deadline and release markers
    for batch in run.history:
        for r in batch:
            row = next(i for i, t in enumerate(tasks) if t.id == r.task_id)
            if r.is_deadline:
                color = 'red' if r.missed_deadline else 'green'
                ax.vlines(r.tick, row * 10, row * 10 + 9, colors=color, linewidth=2)
            if r.is_release:
                ax.plot(r.tick, row * 10 + 9, marker='v', color='black')
    for row, task in enumerate(tasks):
        # Releases at tick 0 happen before the first simulated tick
        if task.release == 0:
            ax.plot(0, row * 10 + 9, marker='v', color='black')

    ax.set_ylim(0, len(tasks) * 10)
    ax.set_xlim(0, run.total_ticks)
    ax.set_xlabel('Tick')
    ax.set_ylabel('Task')
    ax.set_yticks([row * 10 + 4.5 for row in range(len(tasks))])
    ax.set_yticklabels([f'T{t.id}' for t in tasks])
    ax.set_title(f'Timeline - {run.algorithm.label} Scheduling ({run.total_ticks} ticks)')
    ax.legend(handles=[
        mlines.Line2D([], [], color='green', label='Deadline met'),
        mlines.Line2D([], [], color='red', label='Deadline missed'),
        mlines.Line2D([], [], color='black', marker='v', linestyle='None', label='Release'),
    ], loc='upper right')
    ax.grid(True, axis='x')

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f'timeline_{run.algorithm.label}.png'
    fig.savefig(path)
    plt.close(fig)
    print(f"Chart saved to {path.name}")
    return path

def main(task_file=DEFAULT_TASK_FILE, algorithm="ALL", ticks=None, plot_dir=None, random_tasks=0, seed=None):
    # 1. Load Data
    if random_tasks:
        print(f"Generating {random_tasks} random tasks...")
        tasks = generate_random_tasks(random_tasks, seed=seed)
    else:
        print("Loading Task Set...")
        tasks = load_tasks_from_csv(task_file)

    if not tasks:
        print("No tasks loaded. Exiting.")
        return None

    # Reject unusable sets before any output
    tasks = validate_tasks(tasks)
    algorithm = Algorithm.parse(algorithm)
    if ticks is None:
        ticks = hyperperiod(tasks, limit=MAX_AUTO_TICKS)
    validate_total_ticks(ticks)

    # 2. Analytical Part
    print("\n" + "="*30)
    print("      TASK SET ANALYSIS       ")
    print("="*30)

    u = calculate_utilization(tasks)
    rm_ok, _, ll_bound = check_ll_bound(tasks)
    edf_ok, _ = check_edf_bound(tasks)
    print(f"Total Utilization U: {u:.4f}")
    print(f"Liu & Layland Bound: {ll_bound:.4f}")
    print(f"RM schedulable by LL Test? {'Yes' if rm_ok else 'Inconclusive'}")
    print(f"EDF schedulable (U <= 1)? {'Yes' if edf_ok else 'No'}")
    if u > 1:
        print("WARNING: U > 1. System is overloaded. Deadlines will be missed.")
    print(f"Simulated ticks: {ticks}")

    # 3. Simulation Part
    print("\n" + "="*30)
    print("      SIMULATION RESULTS      ")
    print("="*30)

    if algorithm is Algorithm.ALL:
        runs = run_all_policies(tasks, ticks)
        outcome = rank_runs(runs)
        print(format_results(outcome))
        with pd.option_context('display.max_columns', None, 'display.width', None):
            print(results_frame(outcome))
        if plot_dir:
            for run in runs:
                plot_timeline(run, tasks, plot_dir)
    else:
        outcome = run_simulation(algorithm, tasks, ticks)
        print(format_results(outcome))
        print("\n--- Per Task ---")
        print(task_summary(outcome))
        if plot_dir:
            plot_timeline(outcome, tasks, plot_dir)
    return outcome

def cli(argv=None):
    parser = argparse.ArgumentParser(description="Tick-based CPU scheduling simulator")
    parser.add_argument("task_file", nargs="?", default=str(DEFAULT_TASK_FILE),
                        help="CSV with columns Task,Duration,Period,Release")
    parser.add_argument("-a", "--algorithm", default="ALL", type=str.upper,
                        choices=[a.value for a in Algorithm],
                        help="Scheduling policy, ALL compares every policy")
    parser.add_argument("-t", "--ticks", type=int, default=None,
                        help=f"Ticks to simulate (default: hyperperiod, at most {MAX_AUTO_TICKS})")
    parser.add_argument("--random", type=int, default=0, metavar="N",
                        help="Ignore the task file and generate N random tasks")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--plot", nargs="?", const=str(RESULTPLOTS_DIR), default=None, metavar="DIR",
                        help="Save timeline charts (default dir: resultplots/)")
    args = parser.parse_args(argv)

    try:
        outcome = main(args.task_file, args.algorithm, args.ticks, args.plot, args.random, args.seed)
    except InvalidConfiguration as e:
        print(f"Invalid configuration: {e}")
        return 2
    return 0 if outcome is not None else 1

if __name__ == "__main__":
    sys.exit(cli())
