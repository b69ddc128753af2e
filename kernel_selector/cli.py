import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import nbformat
import orjson
import typer

from kernel_selector.config import KernelSelectorSettings
from kernel_selector.finder import LocalKernelFinder
from kernel_selector.log_utils import setup_logging
from kernel_selector.matching import find_best_match
from kernel_selector.models.kernels import Interpreter
from kernel_selector.models.notebook import NotebookMetadata

app = typer.Typer(no_args_is_help=True)


def _make_finder(kernels_dir: Optional[List[Path]], no_jupyter_paths: bool) -> LocalKernelFinder:
    settings = KernelSelectorSettings()
    dirs = list(kernels_dir or []) + list(settings.kernel_spec_dirs)
    return LocalKernelFinder(kernel_spec_dirs=dirs, include_jupyter_paths=not no_jupyter_paths)


def _dump(obj) -> None:
    typer.echo(orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode())


async def _list_specs(finder: LocalKernelFinder):
    specs = await finder.get_kernel_specs()
    _dump([spec.model_dump(mode="json") for spec in specs])


@app.command()
def specs(
    kernels_dir: Optional[List[Path]] = typer.Option(None, help="Extra kernelspec directory"),
    no_jupyter_paths: bool = typer.Option(False, help="Only search --kernels-dir directories"),
    verbose: bool = False,
):
    """List installed kernel specs as JSON."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    asyncio.run(_list_specs(_make_finder(kernels_dir, no_jupyter_paths)))


async def _match(
    notebook_path: Path,
    finder: LocalKernelFinder,
    interpreter: Optional[Interpreter],
):
    notebook = nbformat.read(str(notebook_path), as_version=nbformat.NO_CONVERT)
    metadata = NotebookMetadata.from_notebook(notebook)
    candidates = await finder.get_kernel_specs()
    best_match = find_best_match(interpreter, metadata, candidates)
    _dump(
        {
            "kernel_spec": best_match.kernel_spec.model_dump(mode="json")
            if best_match.kernel_spec
            else None,
            "score": best_match.score,
        }
    )


@app.command()
def match(
    notebook: Path = typer.Argument(..., exists=True, dir_okay=False),
    kernels_dir: Optional[List[Path]] = typer.Option(None, help="Extra kernelspec directory"),
    no_jupyter_paths: bool = typer.Option(False, help="Only search --kernels-dir directories"),
    interpreter_path: Optional[str] = typer.Option(None, help="Interpreter to match against"),
    interpreter_version: Optional[str] = typer.Option(None, help="e.g. 3.9"),
    verbose: bool = False,
):
    """Print the kernel spec that best fits a notebook, with its score."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    interpreter = None
    if interpreter_path:
        interpreter = Interpreter(path=interpreter_path, version=interpreter_version)
    asyncio.run(_match(notebook, _make_finder(kernels_dir, no_jupyter_paths), interpreter))


if __name__ == "__main__":
    app()
