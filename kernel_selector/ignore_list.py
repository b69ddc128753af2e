"""
Kernels that must never show up in the kernel picker. Restart sessions spin up a spare kernel
ahead of time, those are added here when created and removed again once the restart consumes them.
"""
import logging
from typing import Iterable, Iterator, List

from kernel_selector.models.kernels import KernelConnection, KernelQuickPickItem

logger = logging.getLogger(__name__)


class KernelIgnoreList:
    def __init__(self):
        self._kernel_ids = set()

    def add(self, kernel: KernelConnection) -> None:
        self._kernel_ids.add(kernel.id)
        self._kernel_ids.add(kernel.client_id)
        logger.debug(
            "Hiding kernel from suggestions",
            extra={"kernel_id": kernel.id, "kernel_client_id": kernel.client_id},
        )

    def remove(self, kernel: KernelConnection) -> None:
        self._kernel_ids.discard(kernel.id)
        self._kernel_ids.discard(kernel.client_id)

    def clear(self) -> None:
        self._kernel_ids.clear()

    def __contains__(self, kernel_id: str) -> bool:
        return kernel_id in self._kernel_ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._kernel_ids)

    def __len__(self) -> int:
        return len(self._kernel_ids)


def filter_suggestions(
    suggestions: Iterable[KernelQuickPickItem], ignore_list: KernelIgnoreList
) -> List[KernelQuickPickItem]:
    """Drop suggestions whose live kernel is in the ignore list, keeping the original order."""
    kept = []
    for item in suggestions:
        kernel_model = item.selection.kernel_model
        kernel_id = kernel_model.id if kernel_model is not None else ""
        if kernel_id in ignore_list:
            continue
        kept.append(item)
    return kept
