class KernelRegistrationError(RuntimeError):
    """Registering an interpreter as a new kernel spec failed."""

    pass


class KernelSpecParseError(ValueError):
    """A kernel.json file could not be read into a KernelSpec."""

    def __init__(self, spec_file: str, reason: str):
        self.spec_file = spec_file
        self.reason = reason
        super().__init__(f"Invalid kernel spec {spec_file}: {reason}")
