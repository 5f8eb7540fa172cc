"""Exception types raised by the control loop.

Only configuration problems and artifact problems are expected at startup;
classifier failures abort the current run. Nothing in the loop retries.
"""


class ConfigError(ValueError):
    """Invalid or unknown configuration value."""


class ArtifactError(RuntimeError):
    """Classifier artifact is missing, unreadable or carries malformed metadata."""


class ClassifierError(RuntimeError):
    """The classifier raised or returned a value that is not a known label."""


class ClassifierLatencyError(ClassifierError):
    """A classify call took longer than the configured latency budget."""

    def __init__(self, elapsed_s: float, budget_s: float):
        super().__init__(
            f"Classification took {elapsed_s * 1000:.2f} ms, "
            f"budget is {budget_s * 1000:.2f} ms"
        )
        self.elapsed_s = elapsed_s
        self.budget_s = budget_s
