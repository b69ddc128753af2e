from unittest.mock import AsyncMock

import pytest

from kernel_selector.clients.jupyter import JupyterSessionManagerFactory
from kernel_selector.config import KernelSelectorSettings
from kernel_selector.models.kernels import Interpreter, KernelSpec
from kernel_selector.selector import KernelSelector


@pytest.fixture
def interpreter() -> Interpreter:
    return Interpreter(path="/usr/bin/python3.9", version="3.9.7", display_name="Python 3.9")


@pytest.fixture
def python3_spec() -> KernelSpec:
    return KernelSpec(
        name="python3",
        path="/usr/bin/python3.9",
        display_name="Python 3",
        language="python",
        argv=["/usr/bin/python3.9", "-m", "ipykernel_launcher", "-f", "{connection_file}"],
    )


@pytest.fixture
def session_manager_factory() -> JupyterSessionManagerFactory:
    return JupyterSessionManagerFactory()


@pytest.fixture
def collaborators(session_manager_factory):
    selection_provider = AsyncMock()
    selection_provider.get_kernel_selections_for_local_session.return_value = []
    selection_provider.get_kernel_selections_for_remote_session.return_value = []

    application_shell = AsyncMock()
    application_shell.show_quick_pick.return_value = None
    application_shell.show_error_message.return_value = None
    application_shell.show_information_message.return_value = None

    kernel_service = AsyncMock()
    kernel_service.get_kernel_specs.return_value = []
    kernel_service.find_matching_kernel_spec.return_value = None
    kernel_service.find_matching_interpreter.return_value = None
    kernel_service.update_kernel_environment.return_value = None
    kernel_service.search_and_register_kernel.return_value = None

    interpreter_service = AsyncMock()
    interpreter_service.get_active_interpreter.return_value = None

    dependency_service = AsyncMock()
    dependency_service.are_dependencies_installed.return_value = True

    kernel_finder = AsyncMock()
    kernel_finder.find_kernel_spec.return_value = None

    return {
        "selection_provider": selection_provider,
        "application_shell": application_shell,
        "kernel_service": kernel_service,
        "interpreter_service": interpreter_service,
        "dependency_service": dependency_service,
        "kernel_finder": kernel_finder,
        "session_manager_factory": session_manager_factory,
    }


@pytest.fixture
def selector(collaborators) -> KernelSelector:
    selector = KernelSelector(settings=KernelSelectorSettings(), **collaborators)
    yield selector
    selector.dispose()
