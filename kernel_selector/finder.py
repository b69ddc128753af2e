"""
Find kernel specs installed on this machine by reading kernel.json files out of the kernelspec
directories, i.e. <dir>/<kernel name>/kernel.json for every dir in the search path.

The search path is any directories passed in, followed by the standard Jupyter data directories
(see `jupyter --paths`). When the same kernel name shows up in more than one directory the first
one wins, which is the precedence Jupyter itself uses.
"""
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import orjson
from jupyter_core.paths import jupyter_path

from kernel_selector.cancellation import CancellationToken
from kernel_selector.errors import KernelSpecParseError
from kernel_selector.models.kernels import KernelSpec
from kernel_selector.models.notebook import NotebookKernelSpec

logger = logging.getLogger(__name__)

KERNEL_JSON = "kernel.json"


def load_kernel_spec(spec_file: Union[str, Path], name: Optional[str] = None) -> KernelSpec:
    """Read one kernel.json. The kernel name defaults to its directory name, lowercased."""
    spec_file = Path(spec_file)
    name = name or spec_file.parent.name.lower()
    try:
        data = orjson.loads(spec_file.read_bytes())
    except OSError as e:
        raise KernelSpecParseError(str(spec_file), f"unreadable ({e})") from e
    except orjson.JSONDecodeError as e:
        raise KernelSpecParseError(str(spec_file), f"invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise KernelSpecParseError(str(spec_file), "expected a JSON object")
    if not isinstance(data.get("argv"), list) or not data["argv"]:
        raise KernelSpecParseError(str(spec_file), "'argv' must be a non-empty list")
    return KernelSpec.from_kernel_json(name, data, spec_file=str(spec_file))


class LocalKernelFinder:
    def __init__(
        self,
        kernel_spec_dirs: Iterable[Union[str, Path]] = (),
        include_jupyter_paths: bool = True,
        default_kernel_name: str = "python3",
    ):
        dirs = [Path(d) for d in kernel_spec_dirs]
        if include_jupyter_paths:
            dirs.extend(Path(d) for d in jupyter_path("kernels"))
        self.kernel_spec_dirs = dirs
        # Looked up when a notebook has no kernelspec in its metadata
        self.default_kernel_name = default_kernel_name

    def _scan(self) -> Dict[str, KernelSpec]:
        found: Dict[str, KernelSpec] = {}
        for spec_dir in self.kernel_spec_dirs:
            if not spec_dir.is_dir():
                continue
            for kernel_dir in sorted(spec_dir.iterdir()):
                spec_file = kernel_dir / KERNEL_JSON
                name = kernel_dir.name.lower()
                if name in found or not spec_file.is_file():
                    continue
                try:
                    found[name] = load_kernel_spec(spec_file, name=name)
                except KernelSpecParseError as e:
                    logger.warning(
                        "Skipping invalid kernel spec",
                        extra={"spec_file": e.spec_file, "reason": e.reason},
                    )
        return found

    async def get_kernel_specs(
        self, cancel_token: Optional[CancellationToken] = None
    ) -> List[KernelSpec]:
        specs = list(self._scan().values())
        logger.debug("Found local kernel specs", extra={"kernel_spec_count": len(specs)})
        return specs

    async def find_kernel_spec(
        self,
        resource=None,
        kernel_spec: Optional[NotebookKernelSpec] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[KernelSpec]:
        """
        Installed kernel spec for the kernelspec block of a notebook, matched by name and falling
        back to the display name. None if nothing is installed under either.
        """
        specs = self._scan()
        if kernel_spec is None:
            return specs.get(self.default_kernel_name)

        if kernel_spec.name and kernel_spec.name.lower() in specs:
            return specs[kernel_spec.name.lower()]
        if kernel_spec.display_name:
            for spec in specs.values():
                if spec.display_name == kernel_spec.display_name:
                    return spec
        logger.info(
            "No installed kernel spec for notebook kernel",
            extra={"kernel_name": kernel_spec.name, "display_name": kernel_spec.display_name},
        )
        return None
