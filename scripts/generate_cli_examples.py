from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import PIL.Image

EXAMPLES_ROOT = Path("examples/cli-options")
BASE_ARGS = ["render", "--width", "160", "--height", "120"]


@dataclass
class Expected:
    path: Path
    size: tuple[int, int]


@dataclass
class Example:
    name: str
    args: list[str]
    expected: Expected
    clean: list[Path] | None = None

    def full_args(self) -> list[str]:
        return [sys.executable, "serve.py", *self.args, "--output", str(self.expected.path)]


EXAMPLES: list[Example] = [
    Example(
        name="defaults",
        args=[*BASE_ARGS],
        expected=Expected(EXAMPLES_ROOT / "defaults" / "full-view.png", (160, 120)),
        clean=[EXAMPLES_ROOT / "defaults"],
    ),
    Example(
        name="pos",
        args=[*BASE_ARGS, "--pos=-0.8,0.05,-0.7,0.15"],
        expected=Expected(EXAMPLES_ROOT / "pos" / "seahorse-valley.png", (160, 120)),
        clean=[EXAMPLES_ROOT / "pos"],
    ),
    Example(
        name="workers",
        args=[*BASE_ARGS, "--workers", "1"],
        expected=Expected(EXAMPLES_ROOT / "workers" / "single-worker.png", (160, 120)),
        clean=[EXAMPLES_ROOT / "workers"],
    ),
    Example(
        name="strategy",
        args=[*BASE_ARGS, "--strategy", "per-row"],
        expected=Expected(EXAMPLES_ROOT / "strategy" / "per-row.png", (160, 120)),
        clean=[EXAMPLES_ROOT / "strategy"],
    ),
    Example(
        name="single-pixel",
        args=["render", "--width", "1", "--height", "1"],
        expected=Expected(EXAMPLES_ROOT / "single-pixel" / "one.png", (1, 1)),
        clean=[EXAMPLES_ROOT / "single-pixel"],
    ),
    Example(
        name="format",
        args=[*BASE_ARGS, "--format", "bmp"],
        expected=Expected(EXAMPLES_ROOT / "format" / "bitmap.bmp", (160, 120)),
        clean=[EXAMPLES_ROOT / "format"],
    ),
    Example(
        name="verbose",
        args=["--verbose", *BASE_ARGS],
        expected=Expected(EXAMPLES_ROOT / "verbose" / "diagnostic.png", (160, 120)),
        clean=[EXAMPLES_ROOT / "verbose"],
    ),
]


def _ensure_clean(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()


def _prepare(example: Example) -> None:
    _ensure_clean(example.clean or [])
    example.expected.path.parent.mkdir(parents=True, exist_ok=True)


def _verify(example: Example) -> None:
    expected = example.expected
    if not expected.path.is_file():
        raise RuntimeError(f"Expected file {expected.path} was not created")
    with PIL.Image.open(expected.path) as image:
        if image.size != expected.size:
            raise RuntimeError(f"{expected.path} is {image.size}, expected {expected.size}")
        if image.mode != "L":
            raise RuntimeError(f"{expected.path} has mode {image.mode}, expected L")


def main() -> None:
    EXAMPLES_ROOT.mkdir(parents=True, exist_ok=True)
    for example in EXAMPLES:
        print(f"\n[cli-example] {example.name}")
        _prepare(example)
        completed = subprocess.run(example.full_args(), check=True)
        if completed.returncode != 0:
            raise RuntimeError(f"Example {example.name} failed with {completed.returncode}")
        _verify(example)
    print("\nAll CLI examples generated successfully.")


if __name__ == "__main__":
    main()
