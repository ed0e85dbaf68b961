"""Command line interface: listing, running, verifying and watching exercises."""

from __future__ import annotations

import argparse
import enum
import json
import os
import queue
import subprocess
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .exercise import CompilationError, Exercise, ExerciseFailed, load_exercises
from .project import RustAnalyzerProject
from .run import reset, run
from .ui import no_emoji
from .verify import verify

VERSION = "5.5.1"
CHECK_RESULT_PATH = ".github/result/check_result.json"
_DEBOUNCE_SECONDS = 1.0


@dataclass
class ExerciseResult:
    """Outcome of checking one exercise."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals over a whole checking run."""

    total_exercations: int
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """The report written by the cicvverify command."""

    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    statistics: ExerciseStatistics = field(
        default_factory=lambda: ExerciseStatistics(total_exercations=0)
    )

    def to_json(self) -> str:
        """Serialise the report as indented JSON."""
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


class WatchStatus(enum.Enum):
    """How watch mode ended."""

    FINISHED = "finished"
    UNFINISHED = "unfinished"


def rustc_exists() -> bool:
    """Whether ``rustc --version`` can be run successfully."""
    try:
        proc = subprocess.run(["rustc", "--version"], stdout=subprocess.DEVNULL)
    except OSError:
        return False
    return proc.returncode == 0


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Find an exercise by name; ``next`` means the first one not yet done.

    Raises LookupError with a user-facing message when nothing matches.
    """
    if name == "next":
        for exercise in exercises:
            if not exercise.looks_done():
                return exercise
        raise LookupError(
            "🎉 Congratulations! You have done all the exercises!\n"
            "🔚 There are no more exercises to do next!"
        )
    for exercise in exercises:
        if exercise.name == name:
            return exercise
    raise LookupError(f"No exercise found for '{name}'!")


def list_exercises(
    exercises: Sequence[Exercise],
    paths: bool = False,
    names: bool = False,
    filter: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
) -> list[str]:
    """Return the lines of the exercise listing, ending with a progress line."""
    lines: list[str] = []
    if not paths and not names:
        lines.append(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}")
    patterns = [p for p in (filter or "").lower().split(",") if p.strip()]
    done_count = 0
    for exercise in exercises:
        fname = str(exercise.path)
        matches = any(p in exercise.name or p in fname for p in patterns)
        done = exercise.looks_done()
        if done:
            done_count += 1
        status = "Done" if done else "Pending"
        wanted = (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        if wanted and (matches or filter is None):
            if paths:
                lines.append(fname)
            elif names:
                lines.append(exercise.name)
            else:
                lines.append(f"{exercise.name:<17}\t{fname:<46}\t{status:<7}")
    total = len(exercises)
    percentage = f"{done_count / total * 100.0:.1f}" if total else "NaN"
    lines.append(
        f"Progress: You completed {done_count} / {total} exercises ({percentage} %)."
    )
    return lines


def cicv_verify(
    exercises: Sequence[Exercise], output_path: str | os.PathLike = CHECK_RESULT_PATH
) -> ExerciseCheckList:
    """Run every exercise concurrently, report progress and write a JSON summary."""
    start = int(time.time())
    total = len(exercises)
    lock = threading.Lock()
    check_list = ExerciseCheckList(
        exercises=[],
        user_name=None,
        statistics=ExerciseStatistics(total_exercations=total),
    )

    def check(exercise: Exercise, task_start: int) -> None:
        try:
            run(exercise, True)
            passed = True
        except (CompilationError, ExerciseFailed):
            passed = False
        with lock:
            stats = check_list.statistics
            if passed:
                stats.total_succeeds += 1
                print(f"{exercise.name}执行成功")
            else:
                print(f"{exercise.name}执行失败")
            print(f"总的题目数: {total}")
            print(f"当前做正确的题目数: {stats.total_succeeds}")
            print(f"当前修改试卷耗时: {int(time.time()) - task_start} s")
            check_list.exercises.append(ExerciseResult(name=exercise.name, result=passed))
            if not passed:
                stats.total_failures += 1

    with ThreadPoolExecutor() as pool:
        futures = [pool.submit(check, exercise, int(time.time())) for exercise in exercises]
        for future in futures:
            future.result()

    total_time = int(time.time()) - start
    print(
        "===============================试卷批改完成,总耗时: "
        f"{total_time} s; =================================="
    )
    check_list.statistics.total_time = total_time
    Path(output_path).write_text(check_list.to_json(), encoding="utf-8")
    return check_list


def handle_watch_command(line: str, hint: str | None) -> bool:
    """Carry out one command typed in watch mode; return True to quit."""
    command = line.strip()
    if command == "hint":
        if hint is not None:
            print(hint)
    elif command == "clear":
        print("\x1b[2J\x1b[1;1H")
    elif command == "quit":
        print("Bye!")
        return True
    elif command == "help":
        print("Commands available to you in watch mode:")
        print("  hint   - prints the current exercise's hint")
        print("  clear  - clears the screen")
        print("  quit   - quits watch mode")
        print("  !<cmd> - executes a command, like `!rustc --explain E0381`")
        print("  help   - displays this help message")
        print()
        print("Watch mode automatically re-evaluates the current exercise")
        print("when you edit a file's contents.")
    elif command.startswith("!"):
        shell_command = command[1:]
        parts = shell_command.split()
        if not parts:
            print("no command provided")
        else:
            try:
                subprocess.run(parts)
            except OSError as exc:
                print(f"failed to execute command `{shell_command}`: {exc}")
    else:
        print(f"unknown command: {command}")
    return False


class _SharedHint:
    def __init__(self, hint: str | None) -> None:
        self._lock = threading.Lock()
        self._hint = hint

    def get(self) -> str | None:
        with self._lock:
            return self._hint

    def set(self, hint: str | None) -> None:
        with self._lock:
            self._hint = hint


def _spawn_watch_shell(hint: _SharedHint, should_quit: threading.Event) -> None:
    print(
        "Welcome to watch mode! You can type 'help' to get an overview "
        "of the commands you can use here."
    )

    def shell() -> None:
        while True:
            try:
                line = sys.stdin.readline()
            except (OSError, ValueError) as exc:
                print(f"error reading command: {exc}")
                continue
            if not line:
                return
            if handle_watch_command(line, hint.get()):
                should_quit.set()

    threading.Thread(target=shell, daemon=True).start()


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[str]) -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified"):
            return
        path = event.src_path
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        self._events.put(path)


def _clear_screen() -> None:
    print("\x1bc")


def _ends_with(full: Path, tail: Path) -> bool:
    parts = tail.parts
    return len(parts) <= len(full.parts) and full.parts[len(full.parts) - len(parts):] == parts


def _drain(events: queue.Queue[str], first: str) -> list[str]:
    changed = [first]
    while True:
        try:
            path = events.get(timeout=_DEBOUNCE_SECONDS)
        except queue.Empty:
            break
        if path not in changed:
            changed.append(path)
    return changed


def watch(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> WatchStatus:
    """Verify exercises, then re-verify whenever an exercise file changes."""
    events: queue.Queue[str] = queue.Queue()
    should_quit = threading.Event()
    observer = Observer()
    observer.schedule(_ChangeHandler(events), "./exercises", recursive=True)
    observer.start()
    try:
        _clear_screen()
        failed = verify(exercises, (0, len(exercises)), verbose, success_hints)
        if failed is None:
            return WatchStatus.FINISHED
        hint = _SharedHint(failed.hint)
        _spawn_watch_shell(hint, should_quit)
        while True:
            try:
                first = events.get(timeout=1.0)
            except queue.Empty:
                first = None
            if first is not None:
                for changed in _drain(events, first):
                    path = Path(changed)
                    if path.suffix != ".rs" or not path.exists():
                        continue
                    filepath = path.resolve()
                    edited = [e for e in exercises if _ends_with(filepath, e.path)][:1]
                    others = [
                        e
                        for e in exercises
                        if not e.looks_done() and not _ends_with(filepath, e.path)
                    ]
                    num_done = sum(1 for e in exercises if e.looks_done())
                    _clear_screen()
                    failed = verify(
                        edited + others, (num_done, len(exercises)), verbose, success_hints
                    )
                    if failed is None:
                        return WatchStatus.FINISHED
                    hint.set(failed.hint)
            if should_quit.is_set():
                return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="rustlings",
        description="A collection of small exercises to get you used to "
        "writing and reading Rust code",
    )
    parser.add_argument("--nocapture", action="store_true",
                        help="show outputs from the test exercises")
    parser.add_argument("-v", "--version", action="store_true",
                        help="show the executable version")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("verify", help="Verifies all exercises according to the recommended order")
    watch_parser = commands.add_parser("watch", help="Reruns `verify` when files were edited")
    watch_parser.add_argument("--success-hints", action="store_true",
                              help="show hints on success")
    for name, text in (
        ("run", "Runs/Tests a single exercise"),
        ("reset", 'Resets a single exercise using "git stash -- <filename>"'),
        ("hint", "Returns a hint for the given exercise"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("name", help="the name of the exercise")
    list_parser = commands.add_parser("list", help="Lists the exercises available")
    list_parser.add_argument("-p", "--paths", action="store_true",
                             help="show only the paths of the exercises")
    list_parser.add_argument("-n", "--names", action="store_true",
                             help="show only the names of the exercises")
    list_parser.add_argument("-f", "--filter", default=None,
                             help="comma separated patterns to match exercise names")
    list_parser.add_argument("-u", "--unsolved", action="store_true",
                             help="display only exercises not yet solved")
    list_parser.add_argument("-s", "--solved", action="store_true",
                             help="display only exercises that have been solved")
    commands.add_parser("lsp", help="Enable rust-analyzer for exercises")
    commands.add_parser("cicvverify", help="cicvverify")
    return parser


def _write_listing(lines: list[str]) -> int:
    try:
        sys.stdout.write("".join(f"{line}\n" for line in lines))
        sys.stdout.flush()
    except BrokenPipeError:
        return 0
    except OSError:
        return 1
    return 0


def _lsp() -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError as exc:
        raise RuntimeError(
            "Couldn't find toolchain path, do you have `rustc` installed?"
        ) from exc
    project.exercises_to_json()
    if not project.crates:
        print("Failed find any exercises, make sure you're in the `rustlings` folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _watch_command(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> int:
    try:
        status = watch(exercises, verbose, success_hints)
    except OSError as exc:
        print(f"Error: Could not watch your progress. Error message was {exc!r}.")
        print(
            "Most likely you've run out of disk space or your "
            "'inotify limit' has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if no_emoji() else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FENISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `rustlings watch` again"
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit code."""
    try:
        args = _build_parser().parse_args(argv)
    except _UsageError as exc:
        print(f"rustlings: {exc}", file=sys.stderr)
        return 1

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path("info.toml").exists():
        print(f"{sys.argv[0]} must be run from the rustlings directory")
        print("Try `cd rustlings/`!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = load_exercises("info.toml")
    verbose = args.nocapture

    if args.command is None:
        print(f"{DEFAULT_OUT}\n")
        return 0

    if args.command == "list":
        return _write_listing(
            list_exercises(
                exercises, args.paths, args.names, args.filter, args.unsolved, args.solved
            )
        )

    if args.command in ("run", "reset", "hint"):
        try:
            exercise = find_exercise(args.name, exercises)
        except LookupError as exc:
            print(exc.args[0])
            return 1
        if args.command == "hint":
            print(exercise.hint)
            return 0
        if args.command == "reset":
            try:
                reset(exercise)
            except OSError:
                return 1
            return 0
        try:
            run(exercise, verbose)
        except (CompilationError, ExerciseFailed):
            return 1
        return 0

    if args.command == "verify":
        failed = verify(exercises, (0, len(exercises)), verbose, False)
        return 0 if failed is None else 1

    if args.command == "cicvverify":
        cicv_verify(exercises)
        return 0

    if args.command == "lsp":
        return _lsp()

    return _watch_command(exercises, verbose, args.success_hints)


DEFAULT_OUT = """Thanks for installing Rustlings!

Is this your first time? Don't worry, Rustlings was made for beginners! We are
going to teach you a lot of things about Rust, but before we can get
started, here's a couple of notes about how Rustlings operates:

1. The central concept behind Rustlings is that you solve exercises. These
   exercises usually have some sort of syntax error in them, which will cause
   them to fail compilation or testing. Sometimes there's a logic error instead
   of a syntax error. No matter what error, it's your job to find it and fix it!
   You'll know when you fixed it because then, the exercise will compile and
   Rustlings will be able to move on to the next exercise.
2. If you run Rustlings in watch mode (which we recommend), it'll automatically
   start with the first exercise. Don't get confused by an error message popping
   up as soon as you run Rustlings! This is part of the exercise that you're
   supposed to solve, so open the exercise file in an editor and start your
   detective work!
3. If you're stuck on an exercise, there is a helpful hint you can view by typing
   'hint' (in watch mode), or running `rustlings hint exercise_name`.
4. If an exercise doesn't make sense to you, feel free to open an issue on the
   project's issue tracker. We look at every issue, and sometimes, other
   learners do too so you can help each other out!
5. If you want to use `rust-analyzer` with exercises, which provides features like
   autocompletion, run the command `rustlings lsp`.

Got all that? Great! To get started, run `rustlings watch` in order to get the first
exercise. Make sure to have your editor open!"""

FENISH_LINE = r"""+----------------------------------------------------+
|          You made it to the Fe-nish line!          |
+--------------------------  ------------------------+
                          \\/
     ▒▒          ▒▒▒▒▒▒▒▒      ▒▒▒▒▒▒▒▒          ▒▒
   ▒▒▒▒  ▒▒    ▒▒        ▒▒  ▒▒        ▒▒    ▒▒  ▒▒▒▒
   ▒▒▒▒  ▒▒  ▒▒            ▒▒            ▒▒  ▒▒  ▒▒▒▒
 ░░▒▒▒▒░░▒▒  ▒▒            ▒▒            ▒▒  ▒▒░░▒▒▒▒
   ▓▓▓▓▓▓▓▓  ▓▓      ▓▓██  ▓▓  ▓▓██      ▓▓  ▓▓▓▓▓▓▓▓
     ▒▒▒▒    ▒▒      ████  ▒▒  ████      ▒▒░░  ▒▒▒▒
       ▒▒  ▒▒▒▒▒▒        ▒▒▒▒▒▒        ▒▒▒▒▒▒  ▒▒
         ▒▒▒▒▒▒▒▒▒▒▓▓▓▓▓▓▒▒▒▒▒▒▒▒▓▓▒▒▓▓▒▒▒▒▒▒▒▒
           ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒
             ▒▒▒▒▒▒▒▒▒▒██▒▒▒▒▒▒██▒▒▒▒▒▒▒▒▒▒
           ▒▒  ▒▒▒▒▒▒▒▒▒▒██████▒▒▒▒▒▒▒▒▒▒  ▒▒
         ▒▒    ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒    ▒▒
       ▒▒    ▒▒    ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒    ▒▒    ▒▒
       ▒▒  ▒▒    ▒▒                  ▒▒    ▒▒  ▒▒
           ▒▒  ▒▒                      ▒▒  ▒▒

We hope you enjoyed learning about the various aspects of Rust!
If you noticed any issues, please don't hesitate to report them to our repo.
You can also contribute your own exercises to help the greater community!

Before reporting an issue or contributing, please read our contributing guidelines."""

WELCOME = r"""       welcome to...
                 _   _ _
  _ __ _   _ ___| |_| (_)_ __   __ _ ___
 | '__| | | / __| __| | | '_ \ / _` / __|
 | |  | |_| \__ \ |_| | | | | | (_| \__ \
 |_|   \__,_|___/\__|_|_|_| |_|\__, |___/
                               |___/"""


if __name__ == "__main__":
    raise SystemExit(main())