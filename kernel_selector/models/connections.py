from typing import Literal, Optional

from pydantic import BaseModel


class JupyterConnection(BaseModel):
    """Where notebook kernels are reached: a raw local launch or a Jupyter server."""

    type: Literal["jupyter", "raw"] = "jupyter"
    # None means "unknown", callers fall back to the configured server uri
    local_launch: Optional[bool] = None
    base_url: str = "http://localhost:8888"
    token: Optional[str] = None
    display_name: str = ""
