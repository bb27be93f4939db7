from __future__ import annotations


class OperatorError(Exception):
    pass


class BootstrapError(OperatorError):
    """The operator cannot start; raised out of the entry point."""


class RegistrationError(BootstrapError):
    pass


class EstablishTimeout(BootstrapError):
    def __init__(self, crd_name: str, timeout_s: float):
        super().__init__(f"CustomResourceDefinition '{crd_name}' not established after {timeout_s:g}s")
        self.crd_name = crd_name
        self.timeout_s = timeout_s


class MissingObjectKey(OperatorError):
    def __init__(self, key: str):
        super().__init__(f"MissingObjectKey: {key}")
        self.key = key
