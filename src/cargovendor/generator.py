"""Invocation of the external build-description generator.

The generator reads the project's Cargo.toml with Cargo pointed at the
vendored sources. Its only contract is: run with this environment, capture
exit status and diagnostic output.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from cargovendor.cargo_config import write_cargo_config
from cargovendor.config import GENERATOR_HASHES_FILENAME, VendorSettings
from cargovendor.errors import GeneratorError

DEFAULT_GENERATOR = ("crate2nix", "generate")


@dataclass(frozen=True, slots=True)
class GeneratorRun:
    command: tuple[str, ...]
    output_path: Path
    hashes_path: Path
    stdout: str
    stderr: str


def generator_hashes_path(settings: VendorSettings) -> Path:
    """The project's crate-hashes.json when readable, else a fresh one in the output directory."""
    project_hashes = settings.project_generator_hashes_path
    if project_hashes.is_file() and os.access(project_hashes, os.R_OK):
        return project_hashes
    return settings.output_dir / GENERATOR_HASHES_FILENAME


def run_generator(
    *,
    settings: VendorSettings,
    config_text: str,
    output_path: str | Path | None = None,
    command: Sequence[str] = DEFAULT_GENERATOR,
    extra_args: Sequence[str] = (),
) -> GeneratorRun:
    if shutil.which(command[0]) is None:
        raise GeneratorError(
            f"Generator `{command[0]}` was not found in PATH.",
            hint="Install the generator or pass its path explicitly.",
            context={"operation": "generate"},
        )
    output = Path(output_path) if output_path is not None else settings.output_dir / "default.nix"
    cargo_home = settings.cargo_home
    write_cargo_config(config_text, settings.cargo_config_path)
    hashes_path = generator_hashes_path(settings)

    argv = (
        *command,
        *extra_args,
        "-f",
        str(settings.cargo_toml_path),
        "-h",
        str(hashes_path),
        "-o",
        str(output),
    )
    env = {**os.environ, "CARGO_HOME": str(cargo_home), "HOME": str(settings.output_dir)}
    completed = subprocess.run(
        argv,
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )
    if completed.returncode != 0:
        raise GeneratorError(
            f"{command[0]} failed.",
            hint="Check the cargo config and crate-hashes.json below.",
            context={
                "operation": "generate",
                "returncode": str(completed.returncode),
                "stderr": completed.stderr[-2000:] if completed.stderr else "",
                "cargo_config": _indent(config_text),
                "crate_hashes": _indent(_read_or_empty(hashes_path)),
            },
        )
    return GeneratorRun(
        command=argv,
        output_path=output,
        hashes_path=hashes_path,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def _read_or_empty(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return ""


def _indent(text: str) -> str:
    return "\n" + "\n".join(f"    {line}" for line in text.splitlines())
