"""Checking exercises one after another, with progress reporting."""

from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.status import Status
from rich.text import Text

from .exercise import (
    CompilationError,
    CompiledExercise,
    ContextLine,
    Exercise,
    ExerciseFailed,
    Mode,
)
from .ui import no_emoji, success, warn

_BAR_WIDTH = 60


def _stdout() -> Console:
    return Console(highlight=False, soft_wrap=True, emoji=False)


def _stderr() -> Console:
    return Console(stderr=True, highlight=False, soft_wrap=True, emoji=False)


def _draw_progress(position: int, total: int, percentage: float) -> None:
    filled = min(_BAR_WIDTH * position // total, _BAR_WIDTH) if total else _BAR_WIDTH
    bar = Text("Progress: [")
    bar.append("#" * filled, style="green")
    if filled < _BAR_WIDTH:
        bar.append(">" + "-" * (_BAR_WIDTH - filled - 1), style="red")
    bar.append(f"] {position}/{total} ({percentage:.1f} %)")
    _stderr().print(bar)


def _separator() -> Text:
    return Text("====================", style="bold")


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool,
    success_hints: bool,
) -> Exercise | None:
    """Check exercises in order; return the first one that is not finished.

    ``progress`` is ``(done, total)`` and seeds the progress display.
    Returns None when every exercise compiles, runs and looks done.
    """
    num_done, total = progress
    position = num_done
    percentage = num_done / total * 100.0 if total else 0.0
    _draw_progress(position, total, percentage)

    for exercise in exercises:
        try:
            if exercise.mode in (Mode.TEST, Mode.BUILDSCRIPT):
                passed = _compile_and_test(exercise, True, verbose, success_hints)
            elif exercise.mode is Mode.COMPILE:
                passed = _compile_and_run_interactively(exercise, success_hints)
            else:
                passed = _compile_only(exercise, success_hints)
        except (CompilationError, ExerciseFailed):
            return exercise
        if not passed:
            return exercise
        if total:
            percentage += 100.0 / total
        position += 1
        _draw_progress(position, total, percentage)
    return None


def test(exercise: Exercise, verbose: bool) -> None:
    """Compile and run the exercise's test harness without prompting.

    Raises CompilationError or ExerciseFailed when it does not pass.
    """
    _compile_and_test(exercise, False, verbose, False)


def _compile(exercise: Exercise, status: Status) -> CompiledExercise:
    try:
        return exercise.compile()
    except CompilationError as exc:
        status.stop()
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(exc.output.stderr)
        raise


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    with _stderr().status(f"Compiling {exercise}...") as status:
        with _compile(exercise, status):
            pass
        status.stop()
    return _prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    with _stderr().status(f"Compiling {exercise}...") as status:
        with _compile(exercise, status) as compiled:
            status.update(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExerciseFailed as exc:
                status.stop()
                warn(f"Ran {exercise} with errors")
                print(exc.output.stdout)
                print(exc.output.stderr)
                raise
            status.stop()
            return _prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, interactive: bool, verbose: bool, success_hints: bool
) -> bool:
    with _stderr().status(f"Testing {exercise}...") as status:
        with _compile(exercise, status) as compiled:
            try:
                output = compiled.run()
            except ExerciseFailed as exc:
                status.stop()
                warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
                print(exc.output.stdout)
                raise
            status.stop()
            if verbose:
                print(output.stdout)
            if interactive:
                return _prompt_for_completion(exercise, None, success_hints)
            return True


_SUCCESS_TITLES = {
    Mode.COMPILE: "Successfully ran {}!",
    Mode.TEST: "Successfully tested {}!",
    Mode.CLIPPY: "Successfully compiled {}!",
    Mode.BUILDSCRIPT: "Successfully compiled {}!",
}


def _success_message(mode: Mode) -> str:
    if mode is Mode.COMPILE:
        return "The code is compiling!"
    if mode is Mode.TEST:
        return "The code is compiling, and the tests pass!"
    if mode is Mode.CLIPPY:
        if no_emoji():
            return "The code is compiling, and Clippy is happy!"
        return "The code is compiling, and 📎 Clippy 📎 is happy!"
    return "Build script works!"


def _format_context_line(context_line: ContextLine) -> Text:
    text = Text()
    text.append(f"{context_line.number:>2}", style="bold blue")
    text.append(" ")
    text.append("|", style="blue")
    text.append("  ")
    text.append(context_line.line, style="bold" if context_line.important else "")
    return text


def _prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    context = exercise.state()
    if context is None:
        return True

    success(_SUCCESS_TITLES[exercise.mode].format(exercise))

    message = _success_message(exercise.mode)
    print()
    if no_emoji():
        print(f"~*~ {message} ~*~")
    else:
        print(f"🎉 🎉  {message} 🎉 🎉")
    print()

    console = _stdout()
    if prompt_output is not None:
        print("Output:")
        console.print(_separator())
        print(prompt_output)
        console.print(_separator())
        print()
    if success_hints:
        print("Hints:")
        console.print(_separator())
        print(exercise.hint)
        console.print(_separator())
        print()

    print("You can keep working on this exercise,")
    line = Text("or jump into the next one by removing the ")
    line.append("`I AM NOT DONE`", style="bold")
    line.append(" comment:")
    console.print(line)
    print()
    for context_line in context:
        console.print(_format_context_line(context_line))

    return False