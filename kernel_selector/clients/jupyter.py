"""
Talk to a Jupyter server over its REST API to list kernel specs and running sessions. This is the
session manager KernelSelector uses for remote connections.

JupyterSessionManagerFactory builds those clients from a JupyterConnection and is also where the
session layer publishes restart-session notifications (a spare kernel was started for a restart,
or a spare kernel was put to use), which KernelSelector subscribes to.
"""
import logging
import os
from typing import Any, Callable, List, Optional

import backoff
import httpx
from pydantic import TypeAdapter

from kernel_selector.config import KernelSelectorSettings
from kernel_selector.models.connections import JupyterConnection
from kernel_selector.models.kernels import KernelConnection, KernelSpec, LiveSession

logger = logging.getLogger(__name__)

_sessions_adapter = TypeAdapter(List[LiveSession])


class JupyterServerClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8888",
        token: Optional[str] = None,
        headers: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        if timeout is None:
            timeout = httpx.Timeout(KernelSelectorSettings().request_timeout)
        self.base_url = base_url.rstrip("/")
        self.token = token or os.environ.get("JUPYTER_TOKEN")
        self.headers = {}
        if self.token:
            self.headers["Authorization"] = f"token {self.token}"
        if headers:
            self.headers.update(headers)

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            transport=transport,
            timeout=timeout,
        )
        self.default_kernel_name: Optional[str] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @backoff.on_exception(backoff.expo, httpx.ReadTimeout, max_time=10)
    async def get_kernel_specs(self) -> List[KernelSpec]:
        """Kernel specs installed on the server, in the order the server lists them."""
        resp = await self.client.get("/api/kernelspecs")
        resp.raise_for_status()
        data = resp.json()
        self.default_kernel_name = data.get("default")

        specs = []
        for name, entry in (data.get("kernelspecs") or {}).items():
            spec_data = entry.get("spec") or {}
            specs.append(KernelSpec.from_kernel_json(entry.get("name") or name, spec_data))
        logger.debug(
            "Fetched kernel specs",
            extra={"jupyter_url": self.base_url, "kernel_spec_count": len(specs)},
        )
        return specs

    @backoff.on_exception(backoff.expo, httpx.ReadTimeout, max_time=10)
    async def get_running_sessions(self) -> List[LiveSession]:
        resp = await self.client.get("/api/sessions")
        resp.raise_for_status()
        sessions = _sessions_adapter.validate_python(resp.json())
        logger.debug(
            "Fetched running sessions",
            extra={"jupyter_url": self.base_url, "session_count": len(sessions)},
        )
        return sessions


class JupyterSessionManagerFactory:
    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[httpx.Timeout] = None,
        settings: Optional[KernelSelectorSettings] = None,
    ):
        self.settings = settings or KernelSelectorSettings()
        self.transport = transport
        self.timeout = timeout or httpx.Timeout(self.settings.request_timeout)
        self._restart_session_created_callbacks: List[Callable[[KernelConnection], Any]] = []
        self._restart_session_used_callbacks: List[Callable[[KernelConnection], Any]] = []

    async def create(self, connection: JupyterConnection) -> JupyterServerClient:
        logger.info("Creating Jupyter session manager", extra={"jupyter_url": connection.base_url})
        return JupyterServerClient(
            base_url=connection.base_url,
            token=connection.token,
            transport=self.transport,
            timeout=self.timeout,
        )

    def _register(self, callbacks: List[Callable], fn: Callable) -> Callable[[], None]:
        callbacks.append(fn)

        def deregister():
            if fn in callbacks:
                callbacks.remove(fn)

        return deregister

    def on_restart_session_created(
        self, fn: Callable[[KernelConnection], Any]
    ) -> Callable[[], None]:
        return self._register(self._restart_session_created_callbacks, fn)

    def on_restart_session_used(self, fn: Callable[[KernelConnection], Any]) -> Callable[[], None]:
        return self._register(self._restart_session_used_callbacks, fn)

    def restart_session_created(self, kernel: KernelConnection) -> None:
        """Called by the session layer when it starts a spare kernel for a future restart"""
        for fn in list(self._restart_session_created_callbacks):
            fn(kernel)

    def restart_session_used(self, kernel: KernelConnection) -> None:
        """Called by the session layer once a restart switched over to the spare kernel"""
        for fn in list(self._restart_session_used_callbacks):
            fn(kernel)
