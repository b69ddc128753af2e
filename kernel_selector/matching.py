"""
Score kernel specs against an interpreter and the kernel a notebook was saved with.

Points are additive and the highest total wins, ties going to whichever spec came first:
 - 8 when the spec's path is the interpreter's path
 - 4 when the version digit in the spec name matches the interpreter's major version
 - 16 when the spec's display name is the one recorded in the notebook metadata
"""
import re
from typing import Iterable, NamedTuple, Optional

from kernel_selector.models.kernels import Interpreter, KernelSpec
from kernel_selector.models.notebook import NotebookMetadata

PATH_MATCH_SCORE = 8
VERSION_MATCH_SCORE = 4
DISPLAY_NAME_MATCH_SCORE = 16
NO_MATCH_SCORE = -1

# First run of digits that follows at least one non-digit, e.g. 'python38' -> '38'
_NAME_VERSION_RE = re.compile(r"\D+(\d+)")


class KernelSpecMatch(NamedTuple):
    kernel_spec: Optional[KernelSpec]
    score: int


def name_version(spec_name: str) -> Optional[int]:
    """
    Major version hinted at by a kernel spec name. Only the first digit of the run is used, so
    'python38' gives 3 and a (hypothetical) 'python10' gives 1.
    """
    match = _NAME_VERSION_RE.search(spec_name)
    if not match:
        return None
    return int(match.group(1)[0])


def score_kernel_spec(
    spec: KernelSpec,
    interpreter: Optional[Interpreter] = None,
    notebook_metadata: Optional[NotebookMetadata] = None,
) -> int:
    score = 0

    if spec.path and interpreter is not None and spec.path == interpreter.path:
        score += PATH_MATCH_SCORE

    if interpreter is not None and interpreter.version is not None and spec.name:
        version = name_version(spec.name)
        # A leading 0 never counts as a match
        if version and version == interpreter.version.major:
            score += VERSION_MATCH_SCORE

    preferred = notebook_metadata.kernelspec if notebook_metadata is not None else None
    if spec.display_name and preferred is not None and spec.display_name == preferred.display_name:
        score += DISPLAY_NAME_MATCH_SCORE

    return score


def find_best_match(
    interpreter: Optional[Interpreter],
    notebook_metadata: Optional[NotebookMetadata],
    candidates: Iterable[Optional[KernelSpec]],
) -> KernelSpecMatch:
    best_match: Optional[KernelSpec] = None
    best_score = NO_MATCH_SCORE
    for spec in candidates:
        if spec is None:
            continue
        score = score_kernel_spec(spec, interpreter, notebook_metadata)
        if score > best_score:
            best_match = spec
            best_score = score
    return KernelSpecMatch(kernel_spec=best_match, score=best_score)
