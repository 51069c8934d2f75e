"""
Application errors for clean API and agent error handling.

Use ServiceUnavailableError when a dependency (LLM backend) is misconfigured or
unreachable. ToolError and its subclasses are raised by tool adapters so the
agent runtime can retry the step instead of failing the whole run.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. the LLM backend) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ToolError(Exception):
    """Base class for failures the agent may recover from by retrying a step."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ToolInputValidationError(ToolError):
    """Tool input was invalid or the tool's external call failed."""


class ModelOutputParseError(ToolError):
    """Model output did not contain the expected JSON object or failed schema validation."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ReminderCapacityError(Exception):
    """Raised when an insert would push the reminder table past its ceiling."""

    def __init__(self, total: int, limit: int) -> None:
        self.total = total
        self.limit = limit
        super().__init__(f"Reminder limit reached: {total}/{limit}")


class AgentBudgetExceededError(Exception):
    """Raised when an agent run exceeds its retry or iteration ceilings."""

    def __init__(self, message: str, iterations: int = 0, total_retries: int = 0) -> None:
        self.iterations = iterations
        self.total_retries = total_retries
        super().__init__(message)
