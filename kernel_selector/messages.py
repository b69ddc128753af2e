"""User-facing strings and lookup tables shared by the kernel picker flows."""

# Languages reported as-is in telemetry, anything else is bucketed as 'unknown'
KNOWN_NOTEBOOK_LANGUAGES = [
    "python",
    "r",
    "julia",
    "c++",
    "c#",
    "f#",
    "scala",
    "haskell",
    "bash",
    "cling",
    "sas",
]

# Value of the jupyter server uri setting that means "start a server locally"
JUPYTER_SERVER_LOCAL_LAUNCH = "local"

SELECT_KERNEL = "Select a Kernel"
SELECT_DIFFERENT_KERNEL = "Select a different Kernel"
CANCEL = "Cancel"


def session_start_failed_with_kernel(display_name: str) -> str:
    return (
        f"Failed to start a session for the Kernel '{display_name}'. \n"
        "View the Jupyter log for further details."
    )


def fallback_to_active_interpreter(display_name: str) -> str:
    return (
        f"Couldn't find kernel '{display_name}' that the notebook was created with. "
        "Using the current interpreter."
    )


def fallback_to_register_active_interpreter(display_name: str) -> str:
    return (
        f"Couldn't find kernel '{display_name}' that the notebook was created with. "
        "Registering a new kernel using the current interpreter."
    )
