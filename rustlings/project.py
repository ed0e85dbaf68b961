"""Generation of rust-project.json for rust-analyzer."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterator


@dataclass
class Crate:
    """One crate entry of rust-project.json."""

    root_module: str
    edition: str = "2021"
    deps: list[str] = field(default_factory=list)
    # Lets rust-analyzer work inside #[test] blocks.
    cfg: list[str] = field(default_factory=lambda: ["test"])


def _walk(directory: str) -> Iterator[str]:
    try:
        entries = sorted(os.listdir(directory))
    except OSError:
        return
    for entry in entries:
        full = os.path.join(directory, entry)
        yield full
        if os.path.isdir(full):
            yield from _walk(full)


@dataclass
class RustAnalyzerProject:
    """The contents of rust-project.json."""

    sysroot_src: str = ""
    crates: list[Crate] = field(default_factory=list)

    def to_json(self) -> str:
        """Serialise the project as compact JSON."""
        return json.dumps(asdict(self), separators=(",", ":"), ensure_ascii=False)

    def write_to_disk(self, path: str | os.PathLike = "./rust-project.json") -> None:
        """Write rust-project.json to disk."""
        Path(path).write_text(self.to_json(), encoding="utf-8")

    def exercises_to_json(self, root: str = "./exercises") -> None:
        """Add a crate for every .rs file found below root."""
        for path in _walk(root):
            if Path(path).suffix == ".rs":
                self.crates.append(Crate(root_module=path))

    def get_sysroot_src(self) -> None:
        """Find the standard library sources from RUST_SRC_PATH or rustc."""
        env_path = os.environ.get("RUST_SRC_PATH")
        if env_path is not None:
            self.sysroot_src = env_path
            return
        proc = subprocess.run(["rustc", "--print", "sysroot"], capture_output=True)
        text = (proc.stdout or b"").decode("utf-8", errors="replace")
        parts = text.split()
        toolchain = parts[0] if parts else text
        print(f"Determined toolchain: {toolchain}\n")
        self.sysroot_src = os.path.join(toolchain, "lib", "rustlib", "src", "rust", "library")