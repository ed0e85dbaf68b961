"""Exercises: loading, compiling, running and checking completion."""

from __future__ import annotations

import enum
import os
import re
import subprocess
import threading
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .ui import no_emoji

_RUSTC_COLOR_ARGS = ("--color", "always")
_RUSTC_EDITION_ARGS = ("--edition", "2021")
_I_AM_DONE = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
_CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Return a temporary file name unique to this process and thread."""
    return f"./temp_{os.getpid()}_ThreadId{threading.get_ident()}"


def clean() -> None:
    """Remove the temporary binary, ignoring any error."""
    try:
        os.remove(temp_file())
    except OSError:
        pass


class Mode(enum.Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILDSCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the pending marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a compiler or binary run."""

    stdout: str
    stderr: str


class CompilationError(Exception):
    """The exercise failed to compile."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr)
        self.output = output


class ExerciseFailed(Exception):
    """The compiled exercise ran and exited unsuccessfully."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr)
        self.output = output


def _output_of(proc: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=(proc.stdout or b"").decode("utf-8", errors="replace"),
        stderr=(proc.stderr or b"").decode("utf-8", errors="replace"),
    )


def _execute(args: Sequence[str], failure: str) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(list(args), capture_output=True)
    except OSError as exc:
        raise RuntimeError(f"{failure}: {exc}") from exc


def _source_lines(source: str) -> list[str]:
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass(frozen=True)
class Exercise:
    """A single exercise as described in info.toml."""

    name: str
    path: Path
    mode: Mode
    hint: str

    def __str__(self) -> str:
        return str(self.path)

    def _write_manifest(self, manifest: str) -> None:
        content = (
            "[package]\n"
            f'name = "{self.name}"\n'
            'version = "0.0.1"\n'
            'edition = "2021"\n'
            "[[bin]]\n"
            f'name = "{self.name}"\n'
            f'path = "{self.name}.rs"'
        )
        message = (
            "Failed to write Clippy Cargo.toml file."
            if no_emoji()
            else "Failed to write 📎 Clippy 📎 Cargo.toml file."
        )
        try:
            Path(manifest).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(message) from exc

    def compile(self) -> CompiledExercise:
        """Build the exercise; raise CompilationError if that fails."""
        source = str(self.path)
        failure = "Failed to run 'compile' command."
        if self.mode is Mode.COMPILE:
            proc = _execute(
                ["rustc", source, "-o", temp_file(), *_RUSTC_COLOR_ARGS, *_RUSTC_EDITION_ARGS],
                failure,
            )
        elif self.mode is Mode.TEST:
            proc = _execute(
                ["rustc", "--test", source, "-o", temp_file(),
                 *_RUSTC_COLOR_ARGS, *_RUSTC_EDITION_ARGS],
                failure,
            )
        elif self.mode is Mode.CLIPPY:
            self._write_manifest(CLIPPY_CARGO_TOML_PATH)
            # A binary is built as well so that the exercise can be run;
            # a failure here is reported again by clippy below.
            _execute(
                ["rustc", source, "-o", temp_file(), *_RUSTC_COLOR_ARGS, *_RUSTC_EDITION_ARGS],
                "Failed to compile!",
            )
            _execute(
                ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH, *_RUSTC_COLOR_ARGS],
                "Failed to run 'cargo clean'",
            )
            proc = _execute(
                ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                 *_RUSTC_COLOR_ARGS, "--", "-D", "warnings", "-D", "clippy::float_cmp"],
                failure,
            )
        else:
            self._write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH)
            proc = _execute(
                ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH],
                failure,
            )

        if proc.returncode == 0:
            return CompiledExercise(self)
        clean()
        raise CompilationError(_output_of(proc))

    def _run(self) -> ExerciseOutput:
        if self.mode is Mode.BUILDSCRIPT:
            return ExerciseOutput(stdout="", stderr="")
        arg = "--show-output" if self.mode is Mode.TEST else ""
        proc = _execute([temp_file(), arg], "Failed to run 'run' command")
        output = _output_of(proc)
        if proc.returncode != 0:
            raise ExerciseFailed(output)
        return output

    def state(self) -> list[ContextLine] | None:
        """Return the lines around the pending marker, or None when done."""
        source = self.path.read_text(encoding="utf-8")
        if not _I_AM_DONE.search(source):
            return None
        lines = _source_lines(source)
        marker = next((i for i, line in enumerate(lines) if _I_AM_DONE.search(line)), None)
        if marker is None:
            raise RuntimeError("This should not happen at all")
        first = max(marker - _CONTEXT, 0)
        last = marker + _CONTEXT
        return [
            ContextLine(line=line, number=i + 1, important=i == marker)
            for i, line in enumerate(lines)
            if first <= i <= last
        ]

    def looks_done(self) -> bool:
        """Whether the pending marker has been removed from the source."""
        return self.state() is None


class CompiledExercise:
    """A successfully compiled exercise; closing it removes the binary."""

    def __init__(self, exercise: Exercise) -> None:
        self.exercise = exercise
        self._closed = False

    def run(self) -> ExerciseOutput:
        """Run the binary; raise ExerciseFailed on a non-zero exit."""
        return self.exercise._run()

    def close(self) -> None:
        """Remove the temporary binary."""
        if not self._closed:
            self._closed = True
            clean()

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def load_exercises(path: str | os.PathLike = "info.toml") -> list[Exercise]:
    """Read the exercise list from an info.toml file."""
    with open(path, "rb") as handle:
        data = tomllib.load(handle)
    try:
        return [
            Exercise(
                name=entry["name"],
                path=Path(entry["path"]),
                mode=Mode(entry["mode"]),
                hint=entry["hint"],
            )
            for entry in data["exercises"]
        ]
    except KeyError as exc:
        raise ValueError(f"missing field {exc} in {path}") from exc