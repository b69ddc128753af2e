import time
from typing import Optional

from kernel_selector.models.kernels import KernelSpec

DEFAULT_KERNEL_SPEC_NAME = "python_defaultSpec_"
CONNECTION_FILE_PLACEHOLDER = "{connection_file}"


def create_default_kernel_spec(display_name: Optional[str] = None) -> KernelSpec:
    """
    Kernel spec used when the user picks an interpreter in raw mode. 'python' in argv is swapped for
    the selected interpreter at launch time, so nothing is registered on disk.
    """
    return KernelSpec(
        name=DEFAULT_KERNEL_SPEC_NAME,
        language="python",
        display_name=display_name or "Python 3",
        argv=["python", "-m", "ipykernel_launcher", "-f", CONNECTION_FILE_PLACEHOLDER],
        env={},
        metadata={},
    )


class StopWatch:
    def __init__(self):
        self._started = time.monotonic()

    @property
    def elapsed_time(self) -> float:
        """Milliseconds since the stopwatch was created"""
        return (time.monotonic() - self._started) * 1000
