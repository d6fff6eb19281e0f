import random

from model import TaskDefinition


def generate_random_tasks(num_tasks, seed=None):
    """
    Random periodic task set. Each task falls in one of three bands of
    roughly equal probability:
        long:   duration 2-3, period 15-24
        medium: duration 1-2, period  9-14
        short:  duration 1,   period  5-9
    Half of the tasks are released at 0, the rest at 0-9.
    """
    rng = random.Random(seed)
    tasks = []
    for i in range(num_tasks):
        band = rng.random()
        if band < 0.3333:
            duration = rng.randint(2, 3)
            period = rng.randint(15, 24)
        elif band < 0.666:
            duration = rng.randint(1, 2)
            period = rng.randint(9, 14)
        else:
            duration = 1
            period = rng.randint(5, 9)

        # Release is drawn independently of the band
        release = 0 if rng.random() < 0.5 else rng.randint(0, 9)
        tasks.append(TaskDefinition(id=i, duration=duration, period=period, release=release))
    return tasks
