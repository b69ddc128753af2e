"""
Interfaces KernelSelector consumes. Anything with matching methods works, concrete
implementations live in kernel_selector.clients and kernel_selector.finder, and tests use mocks.

`resource` is whatever identifies the notebook in the host application (a path or uri), it is
passed through untouched.
"""
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from typing_extensions import Protocol

from kernel_selector.cancellation import CancellationToken
from kernel_selector.models.connections import JupyterConnection
from kernel_selector.models.kernels import (
    ConnectionType,
    Interpreter,
    KernelConnection,
    KernelQuickPickItem,
    KernelSpec,
    KernelSpecOrModel,
    LiveSession,
)
from kernel_selector.models.notebook import NotebookKernelSpec

Resource = Optional[Any]
KernelConnectionCallback = Callable[[KernelConnection], Any]


class SessionManager(Protocol):
    async def get_kernel_specs(self) -> List[KernelSpec]:
        ...

    async def get_running_sessions(self) -> List[LiveSession]:
        ...


class SessionManagerFactory(Protocol):
    async def create(self, connection: JupyterConnection) -> SessionManager:
        ...

    def on_restart_session_created(self, fn: KernelConnectionCallback) -> Callable[[], None]:
        """Register fn, returns a callable that deregisters it"""
        ...

    def on_restart_session_used(self, fn: KernelConnectionCallback) -> Callable[[], None]:
        ...


class KernelFinder(Protocol):
    async def find_kernel_spec(
        self,
        resource: Resource,
        kernel_spec: Optional[NotebookKernelSpec] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[KernelSpec]:
        ...


class KernelService(Protocol):
    async def get_kernel_specs(
        self,
        session_manager: Optional[SessionManager] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KernelSpec]:
        ...

    async def find_matching_kernel_spec(
        self,
        kernel_spec_or_interpreter: Union[NotebookKernelSpec, Interpreter],
        session_manager: Optional[SessionManager] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[KernelSpec]:
        ...

    async def find_matching_interpreter(
        self,
        kernel_spec: KernelSpecOrModel,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[Interpreter]:
        ...

    async def update_kernel_environment(
        self,
        interpreter: Optional[Interpreter],
        kernel_spec: KernelSpec,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        ...

    async def register_kernel(
        self,
        interpreter: Interpreter,
        disable_ui: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> KernelSpec:
        """Raises KernelRegistrationError when the kernel could not be registered"""
        ...

    async def search_and_register_kernel(
        self,
        interpreter: Interpreter,
        disable_ui: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[KernelSpec]:
        ...


class InterpreterService(Protocol):
    async def get_active_interpreter(self, resource: Resource = None) -> Optional[Interpreter]:
        ...


class KernelDependencyService(Protocol):
    async def are_dependencies_installed(
        self, interpreter: Interpreter, cancel_token: Optional[CancellationToken] = None
    ) -> bool:
        ...


class KernelSelectionProvider(Protocol):
    async def get_kernel_selections_for_local_session(
        self,
        resource: Resource,
        connection_type: ConnectionType,
        session_manager: Optional[SessionManager] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KernelQuickPickItem]:
        ...

    async def get_kernel_selections_for_remote_session(
        self,
        resource: Resource,
        session_manager: SessionManager,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[KernelQuickPickItem]:
        ...


class ApplicationShell(Protocol):
    async def show_quick_pick(
        self,
        items: Sequence[KernelQuickPickItem],
        placeholder: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[KernelQuickPickItem]:
        ...

    def show_error_message(self, message: str, *buttons: str) -> Awaitable[Optional[str]]:
        ...

    def show_information_message(self, message: str, *buttons: str) -> Awaitable[Optional[str]]:
        ...
