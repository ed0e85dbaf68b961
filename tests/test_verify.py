import subprocess
from pathlib import Path
from unittest import mock

import pytest

from rustlings.exercise import (
    BUILD_SCRIPT_CARGO_TOML_PATH,
    CompilationError,
    Exercise,
    ExerciseFailed,
    Mode,
)
from rustlings.verify import test as run_test
from rustlings.verify import verify

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
DONE = "// fake_exercise\n\nfn main() {\n\n}\n"


@pytest.fixture(autouse=True)
def _workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NO_EMOJI", raising=False)


def _make(tmp_path: Path, name: str, mode: Mode, pending: bool = False, hint: str = "") -> Exercise:
    path = tmp_path / f"{name}.rs"
    path.write_text(PENDING if pending else DONE, encoding="utf-8")
    return Exercise(name=name, path=path, mode=mode, hint=hint)


class FakeToolchain:
    def __init__(self, compile_fail=(), run_fail=False, run_stdout="", run_stderr="",
                 compile_stderr=""):
        self.compile_fail = set(compile_fail)
        self.run_fail = run_fail
        self.run_stdout = run_stdout
        self.run_stderr = run_stderr
        self.compile_stderr = compile_stderr
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        if args[0] in ("rustc", "cargo"):
            failed = any(name in arg for arg in args for name in self.compile_fail)
            return subprocess.CompletedProcess(
                args, 1 if failed else 0, b"", self.compile_stderr.encode()
            )
        return subprocess.CompletedProcess(
            args,
            101 if self.run_fail else 0,
            self.run_stdout.encode(),
            self.run_stderr.encode(),
        )


def test_all_done_exercises_pass(tmp_path):
    first = _make(tmp_path, "first", Mode.COMPILE)
    second = _make(tmp_path, "second", Mode.TEST)
    fake = FakeToolchain()
    with mock.patch("subprocess.run", fake):
        assert verify([first, second], (0, 2), False, False) is None
    assert [call[0] for call in fake.calls if call[0] == "rustc"] == ["rustc", "rustc"]
    assert len(fake.calls) == 4


def test_compile_failure_returns_exercise(tmp_path, capsys):
    broken = _make(tmp_path, "broken", Mode.COMPILE)
    fake = FakeToolchain(compile_fail={"broken"}, compile_stderr="error: expected pattern")
    with mock.patch("subprocess.run", fake):
        assert verify([broken], (0, 1), False, False) is broken
    out = capsys.readouterr().out
    assert "Compiling of" in out
    assert "error: expected pattern" in out
    assert len(fake.calls) == 1


def test_stops_at_first_failure(tmp_path):
    good = _make(tmp_path, "good", Mode.COMPILE)
    bad = _make(tmp_path, "bad", Mode.COMPILE)
    later = _make(tmp_path, "later", Mode.COMPILE)
    fake = FakeToolchain(compile_fail={"bad"})
    with mock.patch("subprocess.run", fake):
        assert verify([good, bad, later], (0, 3), False, False) is bad
    assert not any("later" in arg for call in fake.calls for arg in call)


def test_pending_exercise_prompts(tmp_path, capsys):
    pending = _make(tmp_path, "pending_exercise", Mode.COMPILE, pending=True)
    fake = FakeToolchain(run_stdout="Called!")
    with mock.patch("subprocess.run", fake):
        assert verify([pending], (0, 1), False, False) is pending
    out = capsys.readouterr().out
    assert "Successfully ran" in out
    assert "The code is compiling!" in out
    assert "Output:" in out
    assert "Called!" in out
    assert " 3 |  // I AM NOT DONE" in out
    assert "fn main() {" in out


def test_run_failure_returns_exercise(tmp_path, capsys):
    crashing = _make(tmp_path, "crashing", Mode.COMPILE)
    fake = FakeToolchain(run_fail=True, run_stderr="thread 'main' panicked")
    with mock.patch("subprocess.run", fake):
        assert verify([crashing], (0, 1), False, False) is crashing
    out = capsys.readouterr().out
    assert "with errors" in out
    assert "thread 'main' panicked" in out


@pytest.mark.parametrize("verbose", [True, False])
def test_verbose_controls_test_output(tmp_path, capsys, verbose):
    exercise = _make(tmp_path, "testSuccess", Mode.TEST)
    fake = FakeToolchain(run_stdout="THIS TEST TOO SHALL PASS")
    with mock.patch("subprocess.run", fake):
        assert verify([exercise], (0, 1), verbose, False) is None
    out = capsys.readouterr().out
    assert ("THIS TEST TOO SHALL PASS" in out) is verbose


def test_success_hints_are_shown(tmp_path, capsys):
    exercise = _make(tmp_path, "hinted", Mode.TEST, pending=True, hint="Hello!")
    with mock.patch("subprocess.run", FakeToolchain()):
        assert verify([exercise], (0, 1), False, True) is exercise
    out = capsys.readouterr().out
    assert "Hints:" in out
    assert "Hello!" in out


def test_no_emoji_message(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    exercise = _make(tmp_path, "tested", Mode.TEST, pending=True)
    with mock.patch("subprocess.run", FakeToolchain()):
        verify([exercise], (0, 1), False, False)
    out = capsys.readouterr().out
    assert "~*~ The code is compiling, and the tests pass! ~*~" in out
    assert "🎉" not in out


def test_progress_is_reported(tmp_path, capsys):
    exercises = [_make(tmp_path, f"ex{i}", Mode.COMPILE) for i in range(2)]
    with mock.patch("subprocess.run", FakeToolchain()):
        verify(exercises, (0, 2), False, False)
    err = capsys.readouterr().err
    assert "0/2" in err
    assert "2/2 (100.0 %)" in err


def test_clippy_exercise_is_only_compiled(tmp_path):
    (tmp_path / "exercises" / "clippy").mkdir(parents=True)
    exercise = _make(tmp_path, "clippy1", Mode.CLIPPY)
    fake = FakeToolchain()
    with mock.patch("subprocess.run", fake):
        assert verify([exercise], (0, 1), False, False) is None
    assert any("clippy" in call for call in fake.calls)
    assert all(call[0] in ("rustc", "cargo") for call in fake.calls)


def test_test_raises_on_compile_failure(tmp_path):
    exercise = _make(tmp_path, "testFailure", Mode.TEST)
    with mock.patch("subprocess.run", FakeToolchain(compile_fail={"testFailure"})):
        with pytest.raises(CompilationError):
            run_test(exercise, False)


def test_test_raises_when_tests_fail(tmp_path, capsys):
    exercise = _make(tmp_path, "testNotPassed", Mode.TEST)
    fake = FakeToolchain(run_fail=True, run_stdout="test not_passing ... FAILED")
    with mock.patch("subprocess.run", fake):
        with pytest.raises(ExerciseFailed):
            run_test(exercise, False)
    assert "test not_passing ... FAILED" in capsys.readouterr().out


def test_test_does_not_prompt(tmp_path, capsys):
    exercise = _make(tmp_path, "pending_test_exercise", Mode.TEST, pending=True)
    fake = FakeToolchain()
    with mock.patch("subprocess.run", fake):
        run_test(exercise, False)
    assert "I AM NOT DONE" not in capsys.readouterr().out
    assert fake.calls[1][1] == "--show-output"


def test_build_script_runs_cargo_test(tmp_path):
    (tmp_path / "exercises" / "tests").mkdir(parents=True)
    exercise = _make(tmp_path, "build", Mode.BUILDSCRIPT)
    fake = FakeToolchain()
    with mock.patch("subprocess.run", fake):
        assert run_test(exercise, False) is None
    assert fake.calls == [["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH]]
    manifest = Path(BUILD_SCRIPT_CARGO_TOML_PATH).read_text(encoding="utf-8")
    assert 'name = "build"' in manifest
    assert 'path = "build.rs"' in manifest