__all__ = ["ConfigurationError", "MissingInputError", "RepresentationMismatchError"]


class ConfigurationError(ValueError):
    """Raised when the configuration can not be used to start a run."""


class MissingInputError(RuntimeError):
    """Raised when the photon collection of an event is absent."""

    def __init__(self, event_id, input_module=None):
        self.event_id = event_id
        self.input_module = input_module
        msg = f"No photon collection for event {event_id}"
        if input_module:
            msg += f" from input module {input_module}"
        super().__init__(msg)


class RepresentationMismatchError(RuntimeError):
    """Raised when itemized and bucketed photons are mixed within one run."""
