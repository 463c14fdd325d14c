"""Custom exceptions for maintenance manager."""


class MaintenanceManagerError(Exception):
    """Base exception for all maintenance manager errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class EndpointConnectionError(MaintenanceManagerError):
    """Exception raised when a management endpoint cannot be reached."""

    pass


class PreconditionFailedError(MaintenanceManagerError):
    """Exception raised when an operation's precondition does not hold."""

    pass


class BudgetExhaustedError(MaintenanceManagerError):
    """Exception raised when a poll loop ends without a healthy result.

    ``poll_result`` carries how the loop ended: out of attempts, out of
    time, or cancelled by the operator.
    """

    def __init__(self, message: str, details: str = None, poll_result=None):
        self.poll_result = poll_result
        super().__init__(message, details)


class NodeBusyError(MaintenanceManagerError):
    """Exception raised when another operation already holds a node."""

    pass


class ConfigurationError(MaintenanceManagerError):
    """Exception raised for configuration errors."""

    pass
