# rustlings

A command-line runner for a collection of small Rust exercises. Each exercise
has a compile error, a failing test or a logic error for you to fix. The runner
compiles the exercises with `rustc` (or `cargo` for Clippy and build-script
exercises), runs them, and tells you where you stand.

## Requirements

- Python 3.11 or later
- A Rust toolchain with `rustc` on your `PATH`, and `cargo` for the `clippy`
  and `buildscript` exercises
- `git`, for the `reset` command

## Installation

```
pip install .
```

This installs the `rustlings` command.

## The exercise list

Run every command from the directory that holds `info.toml`; elsewhere the
command prints a message and exits with status 1. The same happens when
`rustc --version` cannot be run. `info.toml` lists the exercises in the
recommended order:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"
hint = "Remove the I AM NOT DONE comment."
```

`mode` is one of:

- `compile`: build with `rustc` and run the binary
- `test`: build a test harness with `rustc --test` and run it
- `clippy`: write `exercises/clippy/Cargo.toml`, then run `cargo clippy`
  with warnings denied
- `buildscript`: write `exercises/tests/Cargo.toml`, then run `cargo test`

## Commands

```
rustlings                    # welcome text and a short introduction
rustlings watch              # check exercises, re-check whenever a file changes
rustlings verify             # check all exercises in order, stop at the first unfinished one
rustlings run <name>         # compile and run, or test, one exercise
rustlings run next           # the same for the first exercise not yet done
rustlings hint <name>        # print the hint for an exercise
rustlings reset <name>       # start "git stash -- <path>" for the exercise
rustlings list               # list exercises with their status and a progress line
rustlings lsp                # write rust-project.json for rust-analyzer
rustlings cicvverify         # run every exercise and write a JSON report
rustlings --version          # print v5.5.1
```

`--nocapture`, given before the command, prints the output of test exercises.

`list` accepts:

- `-p`, `--paths`: print only paths
- `-n`, `--names`: print only names
- `-f`, `--filter PATTERNS`: comma-separated substrings matched against names
  and paths
- `-u`, `--unsolved`: only exercises not yet done
- `-s`, `--solved`: only exercises that are done

`watch` accepts `--success-hints` to show an exercise's hint once it passes.
It watches `./exercises` for created or modified `.rs` files. While it runs,
type `hint`, `clear`, `quit`, `help`, or `!<cmd>` to run a command.

`run`, `verify` and `hint` exit with status 1 when the exercise is not found
or does not pass.

## Finishing an exercise

An exercise counts as done once it compiles, passes, and no longer contains a
comment line `// I AM NOT DONE`. Until you remove that line, `verify` and
`watch` stop at the exercise and show the lines around it.

Set `NO_EMOJI` in the environment for output without emoji.

## rust-analyzer

`rustlings lsp` adds a crate for every `.rs` file below `./exercises` and
writes `./rust-project.json`. The standard library sources are taken from
`RUST_SRC_PATH` if set, otherwise from `rustc --print sysroot`.

## Grading report

`rustlings cicvverify` runs every exercise concurrently, prints progress, and
writes `.github/result/check_result.json` with each exercise's result, the
numbers of successes and failures, and the total time in seconds. The
`.github/result` directory must already exist.

## Using it from Python

- `rustlings.exercise.load_exercises(path)` reads `info.toml` into `Exercise`
  objects; `Exercise.compile()`, `Exercise.state()` and
  `Exercise.looks_done()` build and inspect one exercise.
- `rustlings.verify.verify(exercises, (done, total), verbose, success_hints)`
  returns the first unfinished exercise, or `None`.
- `rustlings.run.run(exercise, verbose)` raises `CompilationError` or
  `ExerciseFailed` when the exercise does not pass.
- `rustlings.cli.main(argv)` runs the command line and returns the exit code.

## What is not included

The package is only the runner. It ships no exercises and no `info.toml`;
provide your own exercise directory.