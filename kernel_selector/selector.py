"""
KernelSelector decides which kernel should back a notebook.

Automatic selection walks a chain of fallbacks and stops at the first one that yields a kernel:
 - the kernel spec recorded in the notebook metadata, if it is installed
 - the live kernel the notebook was attached to (remote servers only)
 - the best scoring kernel spec for the active interpreter (remote servers only)
 - the active interpreter, using its kernel spec or registering a new one
 - asking the user to pick from a list of suggestions

Everything that isn't decision making (finding kernel specs and interpreters, talking to Jupyter
servers, checking for ipykernel, rendering prompts) is handed to collaborators passed in at
construction, see kernel_selector.protocols.
"""
import asyncio
import enum
import functools
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Union

from kernel_selector import messages
from kernel_selector.cancellation import CancellationToken, is_cancelled
from kernel_selector.config import KernelSelectorSettings
from kernel_selector.helpers import StopWatch, create_default_kernel_spec
from kernel_selector.ignore_list import KernelIgnoreList, filter_suggestions
from kernel_selector.matching import find_best_match
from kernel_selector.models.connections import JupyterConnection
from kernel_selector.models.kernels import (
    ConnectionType,
    Interpreter,
    KernelConnection,
    KernelQuickPickItem,
    KernelSpec,
    LiveKernelModel,
    LiveSession,
    SelectionResult,
)
from kernel_selector.models.notebook import NotebookMetadata
from kernel_selector.protocols import (
    ApplicationShell,
    InterpreterService,
    KernelDependencyService,
    KernelFinder,
    KernelSelectionProvider,
    KernelService,
    Resource,
    SessionManager,
    SessionManagerFactory,
)

logger = logging.getLogger(__name__)


class TelemetryEvent(str, enum.Enum):
    find_kernel_for_local_connection = "find_kernel_for_local_connection"
    select_local_jupyter_kernel = "select_local_jupyter_kernel"
    select_remote_jupyter_kernel = "select_remote_jupyter_kernel"
    switch_to_interpreter_as_kernel = "switch_to_interpreter_as_kernel"
    switch_to_existing_kernel = "switch_to_existing_kernel"
    use_existing_kernel = "use_existing_kernel"
    use_interpreter_as_kernel = "use_interpreter_as_kernel"
    kernel_register_failed = "kernel_register_failed"


class KernelSelector:
    def __init__(
        self,
        selection_provider: KernelSelectionProvider,
        application_shell: ApplicationShell,
        kernel_service: KernelService,
        interpreter_service: InterpreterService,
        dependency_service: KernelDependencyService,
        kernel_finder: KernelFinder,
        session_manager_factory: SessionManagerFactory,
        settings: Optional[KernelSelectorSettings] = None,
    ):
        self.selection_provider = selection_provider
        self.application_shell = application_shell
        self.kernel_service = kernel_service
        self.interpreter_service = interpreter_service
        self.dependency_service = dependency_service
        self.kernel_finder = kernel_finder
        self.session_manager_factory = session_manager_factory
        self.settings = settings or KernelSelectorSettings()

        # Kernels backing restart sessions are hidden from the picker until the restart uses them
        self.ignore_list = KernelIgnoreList()
        self._deregister_callbacks: List[Callable[[], None]] = [
            session_manager_factory.on_restart_session_created(self.add_kernel_to_ignore_list),
            session_manager_factory.on_restart_session_used(self.remove_kernel_from_ignore_list),
        ]

        # Strong refs to fire-and-forget tasks so they aren't garbage collected mid-flight
        self._background_tasks: Set[asyncio.Task] = set()

    def dispose(self) -> None:
        """Deregister restart-session callbacks and forget hidden kernels."""
        for deregister in self._deregister_callbacks:
            deregister()
        self._deregister_callbacks.clear()
        self.ignore_list.clear()

    def send_telemetry_event(
        self,
        event: TelemetryEvent,
        duration: Optional[float] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Hook for Apps to override so they can ship telemetry wherever they like"""
        logger.debug(
            f"Telemetry event {event.value}",
            extra={"telemetry_duration_ms": duration, "telemetry_properties": properties or {}},
        )

    def _fire_and_forget(self, fn: Callable[[], Any], description: str) -> None:
        """
        Run fn in the background without anyone awaiting it. fn is only called inside the task, so
        whether it raises on call, returns something that isn't awaitable, or fails while awaited,
        the failure is logged at debug and dropped. It never reaches the flow that kicked it off.
        """

        async def _run():
            result = fn()
            if inspect.isawaitable(result):
                await result

        task = asyncio.create_task(_run())
        self._background_tasks.add(task)

        def _done(t: asyncio.Task):
            self._background_tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.debug(f"Background task failed: {description}", exc_info=exc)

        task.add_done_callback(_done)

    def _prewarm_local_suggestions(
        self,
        resource: Resource,
        connection_type: ConnectionType,
        session_manager: Optional[SessionManager],
        cancel_token: Optional[CancellationToken],
    ) -> None:
        self._fire_and_forget(
            functools.partial(
                self.selection_provider.get_kernel_selections_for_local_session,
                resource,
                connection_type,
                session_manager,
                cancel_token,
            ),
            "pre-warm local kernel suggestions",
        )

    # Restart-session notifications
    def add_kernel_to_ignore_list(self, kernel: KernelConnection) -> None:
        self.ignore_list.add(kernel)

    def remove_kernel_from_ignore_list(self, kernel: KernelConnection) -> None:
        self.ignore_list.remove(kernel)

    # Letting the user pick
    async def select_remote_kernel(
        self,
        resource: Resource,
        stop_watch: StopWatch,
        session: SessionManager,
        cancel_token: Optional[CancellationToken] = None,
        current_kernel_display_name: Optional[str] = None,
    ) -> SelectionResult:
        suggestions = await self.selection_provider.get_kernel_selections_for_remote_session(
            resource, session, cancel_token
        )
        suggestions = filter_suggestions(suggestions, self.ignore_list)
        return await self.select_kernel(
            resource,
            ConnectionType.jupyter,
            stop_watch,
            TelemetryEvent.select_remote_jupyter_kernel,
            suggestions,
            session,
            cancel_token,
            current_kernel_display_name,
        )

    async def select_local_kernel(
        self,
        resource: Resource,
        connection_type: Union[ConnectionType, str],
        stop_watch: StopWatch,
        session: Optional[SessionManager] = None,
        cancel_token: Optional[CancellationToken] = None,
        current_kernel_display_name: Optional[str] = None,
    ) -> SelectionResult:
        connection_type = ConnectionType(connection_type)
        suggestions = await self.selection_provider.get_kernel_selections_for_local_session(
            resource, connection_type, session, cancel_token
        )
        suggestions = filter_suggestions(suggestions, self.ignore_list)
        return await self.select_kernel(
            resource,
            connection_type,
            stop_watch,
            TelemetryEvent.select_local_jupyter_kernel,
            suggestions,
            session,
            cancel_token,
            current_kernel_display_name,
        )

    async def select_kernel(
        self,
        resource: Resource,
        connection_type: Union[ConnectionType, str],
        stop_watch: StopWatch,
        telemetry_event: TelemetryEvent,
        suggestions: List[KernelQuickPickItem],
        session: Optional[SessionManager] = None,
        cancel_token: Optional[CancellationToken] = None,
        current_kernel_display_name: Optional[str] = None,
    ) -> SelectionResult:
        connection_type = ConnectionType(connection_type)
        if is_cancelled(cancel_token):
            return SelectionResult()

        placeholder = messages.SELECT_KERNEL
        if current_kernel_display_name:
            placeholder += f" (current: {current_kernel_display_name})"
        self.send_telemetry_event(telemetry_event, stop_watch.elapsed_time)

        picked = await self.application_shell.show_quick_pick(
            suggestions, placeholder, cancel_token
        )
        if picked is None or picked.selection is None:
            return SelectionResult()
        selection = picked.selection

        if selection.interpreter is not None and connection_type == ConnectionType.jupyter:
            self.send_telemetry_event(TelemetryEvent.switch_to_interpreter_as_kernel)
            return await self.use_interpreter_as_kernel(
                resource,
                selection.interpreter,
                connection_type,
                None,
                session,
                False,
                cancel_token,
            )
        elif selection.interpreter is not None and connection_type == ConnectionType.raw:
            return self.use_interpreter_and_default_kernel(selection.interpreter)
        elif selection.kernel_model is not None:
            self.send_telemetry_event(
                TelemetryEvent.switch_to_existing_kernel,
                properties={"language": self.compute_language(selection.kernel_model.language)},
            )
            interpreter = await self.kernel_service.find_matching_interpreter(
                selection.kernel_model, cancel_token
            )
            return SelectionResult(
                kernel_spec=selection.kernel_spec,
                interpreter=interpreter,
                kernel_model=selection.kernel_model,
            )
        elif selection.kernel_spec is not None:
            self.send_telemetry_event(
                TelemetryEvent.switch_to_existing_kernel,
                properties={"language": self.compute_language(selection.kernel_spec.language)},
            )
            interpreter = await self.kernel_service.find_matching_interpreter(
                selection.kernel_spec, cancel_token
            )
            await self.kernel_service.update_kernel_environment(
                interpreter, selection.kernel_spec, cancel_token
            )
            return SelectionResult(kernel_spec=selection.kernel_spec, interpreter=interpreter)
        return SelectionResult()

    async def ask_for_local_kernel(
        self,
        resource: Resource,
        connection_type: Union[ConnectionType, str],
        kernel_spec: Optional[Union[KernelSpec, LiveKernelModel]] = None,
    ) -> Optional[SelectionResult]:
        """Tell the user the kernel failed to start and offer to pick another one."""
        display_name = ""
        if kernel_spec is not None:
            display_name = kernel_spec.display_name or kernel_spec.name or ""
        message = messages.session_start_failed_with_kernel(display_name)
        choice = await self.application_shell.show_error_message(
            message, messages.SELECT_DIFFERENT_KERNEL, messages.CANCEL
        )
        if choice == messages.SELECT_DIFFERENT_KERNEL:
            return await self._select_local_jupyter_kernel(
                resource, connection_type, display_name or None
            )
        return None

    async def select_jupyter_kernel(
        self,
        resource: Resource,
        connection: Optional[JupyterConnection],
        connection_type: Union[ConnectionType, str],
        current_kernel_display_name: Optional[str] = None,
    ) -> Optional[SelectionResult]:
        if connection is not None and connection.local_launch is not None:
            is_local_connection = connection.local_launch
        else:
            is_local_connection = (
                self.settings.jupyter_server_uri.lower() == messages.JUPYTER_SERVER_LOCAL_LAUNCH
            )

        if is_local_connection:
            local_type = connection.type if connection is not None else connection_type
            return await self._select_local_jupyter_kernel(
                resource, local_type, current_kernel_display_name
            )
        elif connection is not None and connection.type == ConnectionType.jupyter.value:
            return await self._select_remote_jupyter_kernel(
                resource, connection, current_kernel_display_name
            )
        return None

    async def _select_local_jupyter_kernel(
        self,
        resource: Resource,
        connection_type: Union[ConnectionType, str],
        current_kernel_display_name: Optional[str],
    ) -> SelectionResult:
        return await self.select_local_kernel(
            resource,
            connection_type,
            StopWatch(),
            None,
            None,
            current_kernel_display_name,
        )

    async def _select_remote_jupyter_kernel(
        self,
        resource: Resource,
        connection: JupyterConnection,
        current_kernel_display_name: Optional[str],
    ) -> SelectionResult:
        stop_watch = StopWatch()
        session = await self.session_manager_factory.create(connection)
        return await self.select_remote_kernel(
            resource, stop_watch, session, None, current_kernel_display_name
        )

    # Automatic selection
    async def get_kernel_for_local_connection(
        self,
        resource: Resource,
        connection_type: Union[ConnectionType, str],
        session_manager: Optional[SessionManager] = None,
        notebook_metadata: Optional[NotebookMetadata] = None,
        disable_ui: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SelectionResult:
        """
        Find the kernel for a notebook when we launched the server (or raw kernel) ourselves.
        May prompt the user to use the current interpreter or to select a kernel.
        """
        connection_type = ConnectionType(connection_type)
        stop_watch = StopWatch()
        telemetry_props = {
            "kernel_spec_found": False,
            "interpreter_found": False,
            "prompted_to_select": False,
        }
        # A local server or raw kernel is about to be used, get the list of local kernels going
        self._prewarm_local_suggestions(resource, connection_type, session_manager, cancel_token)

        if connection_type == ConnectionType.jupyter:
            selection = await self._get_kernel_for_local_jupyter_connection(
                resource,
                stop_watch,
                telemetry_props,
                session_manager,
                notebook_metadata,
                disable_ui,
                cancel_token,
            )
        elif connection_type == ConnectionType.raw:
            selection = await self._get_kernel_for_local_raw_connection(
                resource, notebook_metadata, cancel_token
            )
        else:
            selection = SelectionResult()

        if selection.kernel_spec is None:
            logger.error(
                "Kernel spec not found for a local connection",
                extra={"connection_type": connection_type.value},
            )

        telemetry_props["kernel_spec_found"] = selection.kernel_spec is not None
        telemetry_props["interpreter_found"] = selection.interpreter is not None
        self.send_telemetry_event(
            TelemetryEvent.find_kernel_for_local_connection,
            stop_watch.elapsed_time,
            telemetry_props,
        )
        return selection

    async def get_kernel_for_remote_connection(
        self,
        resource: Resource,
        session_manager: Optional[SessionManager] = None,
        notebook_metadata: Optional[NotebookMetadata] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SelectionResult:
        """
        Find the kernel for a notebook on a remote Jupyter server. Reattaching to the kernel the
        notebook was last using beats any kernel spec, however well it scores.
        """
        interpreter, specs, sessions = await asyncio.gather(
            self.interpreter_service.get_active_interpreter(resource),
            self.kernel_service.get_kernel_specs(session_manager, cancel_token),
            self._get_running_sessions(session_manager),
        )

        if notebook_metadata is not None and notebook_metadata.id:
            for session in sessions:
                if session.kernel.id == notebook_metadata.id:
                    logger.info(
                        "Reattaching to live kernel",
                        extra={"kernel_id": session.kernel.id, "session_id": session.id},
                    )
                    return SelectionResult(
                        kernel_model=LiveKernelModel.from_session(session),
                        interpreter=interpreter,
                    )

        best_match = find_best_match(interpreter, notebook_metadata, specs or [])
        logger.debug(
            "Best kernel spec for remote connection",
            extra={
                "kernel_name": best_match.kernel_spec.name if best_match.kernel_spec else None,
                "score": best_match.score,
            },
        )
        return SelectionResult(kernel_spec=best_match.kernel_spec, interpreter=interpreter)

    async def _get_running_sessions(
        self, session_manager: Optional[SessionManager]
    ) -> List[LiveSession]:
        if session_manager is None:
            return []
        return await session_manager.get_running_sessions()

    async def _get_kernel_for_local_jupyter_connection(
        self,
        resource: Resource,
        stop_watch: StopWatch,
        telemetry_props: Dict[str, bool],
        session_manager: Optional[SessionManager],
        notebook_metadata: Optional[NotebookMetadata],
        disable_ui: bool,
        cancel_token: Optional[CancellationToken],
    ) -> SelectionResult:
        selection = SelectionResult()
        declared = notebook_metadata.kernelspec if notebook_metadata is not None else None

        if declared is not None:
            kernel_spec = await self.kernel_service.find_matching_kernel_spec(
                declared, session_manager, cancel_token
            )
            if kernel_spec is not None:
                interpreter = await self.kernel_service.find_matching_interpreter(
                    kernel_spec, cancel_token
                )
                self.send_telemetry_event(TelemetryEvent.use_existing_kernel)
                # Environment variables of the kernel have to follow the interpreter
                await self.kernel_service.update_kernel_environment(
                    interpreter, kernel_spec, cancel_token
                )
                selection = SelectionResult(kernel_spec=kernel_spec, interpreter=interpreter)
            elif not is_cancelled(cancel_token):
                active_interpreter = await self.interpreter_service.get_active_interpreter(
                    resource
                )
                if active_interpreter is not None:
                    selection = await self.use_interpreter_as_kernel(
                        resource,
                        active_interpreter,
                        ConnectionType.jupyter,
                        declared.display_name,
                        session_manager,
                        disable_ui,
                        cancel_token,
                    )
                else:
                    telemetry_props["prompted_to_select"] = True
                    selection = await self.select_local_kernel(
                        resource,
                        ConnectionType.jupyter,
                        stop_watch,
                        session_manager,
                        cancel_token,
                    )
        elif not is_cancelled(cancel_token):
            # Nothing recorded in the notebook, use the current interpreter as the kernel
            active_interpreter = await self.interpreter_service.get_active_interpreter(resource)
            if active_interpreter is not None:
                kernel_spec = await self.kernel_service.search_and_register_kernel(
                    active_interpreter, disable_ui, cancel_token
                )
                selection = SelectionResult(kernel_spec=kernel_spec, interpreter=active_interpreter)

        return selection

    async def _get_kernel_for_local_raw_connection(
        self,
        resource: Resource,
        notebook_metadata: Optional[NotebookMetadata],
        cancel_token: Optional[CancellationToken],
    ) -> SelectionResult:
        declared = notebook_metadata.kernelspec if notebook_metadata is not None else None
        kernel_spec = await self.kernel_finder.find_kernel_spec(resource, declared, cancel_token)
        if kernel_spec is None:
            return SelectionResult()

        interpreter = await self.kernel_service.find_matching_interpreter(kernel_spec, cancel_token)
        return SelectionResult(kernel_spec=kernel_spec, interpreter=interpreter)

    def use_interpreter_and_default_kernel(self, interpreter: Interpreter) -> SelectionResult:
        """Raw kernels can launch straight from an interpreter, no registration needed."""
        kernel_spec = create_default_kernel_spec(interpreter.display_name)
        return SelectionResult(kernel_spec=kernel_spec, interpreter=interpreter)

    async def use_interpreter_as_kernel(
        self,
        resource: Resource,
        interpreter: Interpreter,
        connection_type: Union[ConnectionType, str],
        not_found_display_name: Optional[str] = None,
        session: Optional[SessionManager] = None,
        disable_ui: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SelectionResult:
        """
        Use the given interpreter as the kernel, registering a kernel spec for it when needed.

        not_found_display_name is the kernel the notebook asked for but which wasn't found. When it
        is given (we're opening a notebook rather than the user switching kernels) the user is told
        that the current interpreter is being used instead.

        Raises KernelRegistrationError if a kernel spec had to be registered and that failed.
        """
        connection_type = ConnectionType(connection_type)

        if await self.dependency_service.are_dependencies_installed(interpreter, cancel_token):
            kernel_spec = await self.kernel_service.find_matching_kernel_spec(
                interpreter, session, cancel_token
            )
            if kernel_spec is not None:
                logger.debug(
                    "ipykernel installed and matching kernel spec found",
                    extra={"interpreter_path": interpreter.path, "kernel_name": kernel_spec.name},
                )
                await self.kernel_service.update_kernel_environment(
                    interpreter, kernel_spec, cancel_token
                )
                if not_found_display_name and not disable_ui:
                    self._fire_and_forget(
                        functools.partial(
                            self.application_shell.show_information_message,
                            messages.fallback_to_active_interpreter(not_found_display_name),
                        ),
                        "notify fallback to active interpreter",
                    )
                self.send_telemetry_event(TelemetryEvent.use_interpreter_as_kernel)
                return SelectionResult(kernel_spec=kernel_spec, interpreter=interpreter)

            logger.info(
                "ipykernel installed but no matching kernel spec found, will register one",
                extra={"interpreter_path": interpreter.path},
            )

        try:
            kernel_spec = await self.kernel_service.register_kernel(
                interpreter, disable_ui, cancel_token
            )
        except Exception:
            self.send_telemetry_event(TelemetryEvent.kernel_register_failed)
            raise

        if not_found_display_name and not disable_ui:
            self._fire_and_forget(
                functools.partial(
                    self.application_shell.show_information_message,
                    messages.fallback_to_register_active_interpreter(not_found_display_name),
                ),
                "notify registered active interpreter",
            )

        # A new kernel spec may exist now, refresh the local kernel list in the background
        self._prewarm_local_suggestions(resource, connection_type, session, cancel_token)

        return SelectionResult(kernel_spec=kernel_spec, interpreter=interpreter)

    @staticmethod
    def compute_language(language: Optional[str]) -> str:
        """Language bucket used in telemetry, languages we don't know about become 'unknown'"""
        if language and language.lower() in messages.KNOWN_NOTEBOOK_LANGUAGES:
            return language
        return "unknown"
