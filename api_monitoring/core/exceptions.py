"""
exceptions raised while wiring observability into the service
"""


class ObservabilityError(Exception):
    """base error of the service"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MetricsNotInitializedError(ObservabilityError):
    """metric instruments requested before init_metrics()"""

    def __init__(self, details: dict | None = None):
        super().__init__("Metrics not initialized. Call init_metrics() first.", details)


class MetricsAlreadyInitializedError(ObservabilityError):
    """init_metrics() called while a metrics context is still active"""

    def __init__(self, details: dict | None = None):
        super().__init__(
            "Metrics already initialized. Shut down the active context first.", details
        )


class ExporterBindError(ObservabilityError):
    """metrics exposition listener could not bind its port"""


class BootstrapError(ObservabilityError):
    """startup steps executed out of order"""
