"""
The slice of notebook metadata that kernel selection cares about: the kernelspec block the
notebook was last saved with and, for notebooks attached to a remote server, the id of the live
kernel they were using.

See https://nbformat.readthedocs.io/en/latest/format_description.html#top-level-structure
"""
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict


class NotebookKernelSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    display_name: Optional[str] = None
    language: Optional[str] = None


class NotebookMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    kernelspec: Optional[NotebookKernelSpec] = None
    language_info: Optional[Dict[str, Any]] = None
    # Id of a kernel running on a remote server that the notebook should reattach to
    id: Optional[str] = None

    @classmethod
    def from_notebook(cls, notebook: Mapping[str, Any]) -> "NotebookMetadata":
        """Build from an nbformat NotebookNode (or the equivalent plain dict)."""
        metadata = dict(notebook.get("metadata") or {})
        return cls.model_validate(metadata)
