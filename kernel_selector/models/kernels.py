"""
Kernel-side models: kernel specs as discovered on disk or from a Jupyter server, Python
interpreters that can back a kernel, and kernels that are already running inside a live session.

A SelectionResult is what every KernelSelector flow hands back. Its three fields are mutually
informative rather than exclusive, e.g. reattaching to a live kernel still carries a best-guess
interpreter.
"""
import enum
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionType(str, enum.Enum):
    raw = "raw"
    jupyter = "jupyter"
    no_connection = "noConnection"

    def __str__(self):
        return self.value


class KernelSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    # Path of the executable that launches the kernel, usually the interpreter
    path: Optional[str] = None
    display_name: Optional[str] = None
    language: Optional[str] = None
    argv: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    # kernel.json this spec was read from, when it came from disk
    spec_file: Optional[str] = None

    @classmethod
    def from_kernel_json(
        cls, name: str, data: Dict[str, Any], spec_file: Optional[str] = None
    ) -> "KernelSpec":
        """
        Build from the contents of a kernel.json file (or the 'spec' block a Jupyter server returns
        from /api/kernelspecs). The path is the first argv entry, typically the interpreter.
        """
        argv = list(data.get("argv") or [])
        return cls(
            name=name,
            path=argv[0] if argv else None,
            display_name=data.get("display_name"),
            language=data.get("language"),
            argv=argv,
            env=data.get("env") or {},
            metadata=data.get("metadata") or {},
            spec_file=spec_file,
        )


class InterpreterVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None

    @classmethod
    def parse(cls, version: str) -> "InterpreterVersion":
        """Parse strings like '3', '3.9' or '3.10.4' (anything after the patch digits is dropped)."""
        match = re.match(r"^\s*(\d+)(?:\.(\d+))?(?:\.(\d+))?", version)
        if not match:
            raise ValueError(f"Invalid interpreter version {version!r}")
        major, minor, patch = match.groups()
        return cls(
            major=int(major),
            minor=int(minor) if minor is not None else None,
            patch=int(patch) if patch is not None else None,
        )

    def __str__(self):
        return ".".join(str(part) for part in (self.major, self.minor, self.patch) if part is not None)


class Interpreter(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    version: Optional[InterpreterVersion] = None
    display_name: Optional[str] = None

    @field_validator("version", mode="before")
    @classmethod
    def version_from_str(cls, v):
        """Accept '3.9.1' style strings as well as InterpreterVersion / dicts."""
        if isinstance(v, str):
            return InterpreterVersion.parse(v)
        return v


class RunningKernel(BaseModel):
    """
    A kernel as reported inside a Jupyter server session. last_activity and connections are kept
    as whatever the server sent, LiveKernelModel.from_session does the lenient parsing.
    """

    id: str
    name: str
    last_activity: Any = None
    execution_state: Optional[str] = None
    connections: Any = None


class LiveSession(BaseModel):
    id: str
    path: str = ""
    name: str = ""
    type: str = "notebook"
    kernel: RunningKernel


def _parse_last_activity(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        try:
            # Jupyter servers report ISO 8601 with a trailing Z
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def _parse_connections(value: Any) -> int:
    if value is None:
        return 0
    match = re.match(r"^\s*([+-]?\d+)", str(value))
    if not match:
        return 0
    return int(match.group(1))


class LiveKernelModel(BaseModel):
    """A kernel spec-like view of a kernel running in a live session."""

    id: str
    name: str
    display_name: Optional[str] = None
    language: Optional[str] = None
    path: Optional[str] = None
    last_activity_time: datetime
    number_of_connections: int = 0
    session: LiveSession

    @classmethod
    def from_session(cls, session: LiveSession) -> "LiveKernelModel":
        kernel = session.kernel
        return cls(
            id=kernel.id,
            name=kernel.name,
            last_activity_time=_parse_last_activity(kernel.last_activity),
            number_of_connections=_parse_connections(kernel.connections),
            session=session,
        )


class KernelConnection(BaseModel):
    """Handle for a kernel connection, as published by restart-session notifications."""

    id: str
    client_id: str
    name: str = ""


class SelectionResult(BaseModel):
    kernel_spec: Optional[KernelSpec] = None
    interpreter: Optional[Interpreter] = None
    kernel_model: Optional[LiveKernelModel] = None

    @property
    def is_empty(self) -> bool:
        return self.kernel_spec is None and self.interpreter is None and self.kernel_model is None


class KernelSelection(BaseModel):
    kernel_spec: Optional[KernelSpec] = None
    interpreter: Optional[Interpreter] = None
    kernel_model: Optional[LiveKernelModel] = None


class KernelQuickPickItem(BaseModel):
    """One row of the kernel picker."""

    label: str
    description: Optional[str] = None
    detail: Optional[str] = None
    selection: KernelSelection = Field(default_factory=KernelSelection)


KernelSpecOrModel = Union[KernelSpec, LiveKernelModel]
