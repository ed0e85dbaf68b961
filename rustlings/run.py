"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess

from rich.console import Console

from .exercise import CompilationError, Exercise, ExerciseFailed, Mode
from .ui import success, warn
from .verify import test


def run(exercise: Exercise, verbose: bool) -> None:
    """Compile and run one exercise, or its tests.

    Raises CompilationError or ExerciseFailed when it does not succeed.
    """
    if exercise.mode in (Mode.TEST, Mode.BUILDSCRIPT):
        test(exercise, verbose)
    else:
        _compile_and_run(exercise)


def reset(exercise: Exercise) -> subprocess.Popen:
    """Start ``git stash -- <path>`` for the exercise and return the process."""
    return subprocess.Popen(["git", "stash", "--", str(exercise.path)])


def _compile_and_run(exercise: Exercise) -> None:
    console = Console(stderr=True, highlight=False, soft_wrap=True, emoji=False)
    with console.status(f"Compiling {exercise}...") as status:
        try:
            compiled = exercise.compile()
        except CompilationError as exc:
            status.stop()
            warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
            print(exc.output.stderr)
            raise
        with compiled:
            status.update(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExerciseFailed as exc:
                status.stop()
                print(exc.output.stdout)
                print(exc.output.stderr)
                warn(f"Ran {exercise} with errors")
                raise
            status.stop()
    print(output.stdout)
    success(f"Successfully ran {exercise}")