"""Exception base for workflow protocol violations.

Modules define their own subclasses next to the code that raises them.
Commands catch WorkflowError, print it and return EXIT_ERROR.
"""


class WorkflowError(Exception):
    """A step of the authoring workflow was attempted out of protocol."""
    pass


class FeatureNotFound(WorkflowError):
    """No feature state exists under the given name."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Feature '{feature}' not found. Start it with 'prd new'.")


class FeatureInProgress(WorkflowError):
    """Intake attempted for a feature whose current instance is unfinished."""

    def __init__(self, feature: str, status: str):
        self.feature = feature
        self.status = status
        super().__init__(
            f"Feature '{feature}' is already in progress (status: {status}). "
            "Finish it with 'prd save' before starting a new instance."
        )
