class KanbanError(Exception):
    """Base class for domain errors raised by the service layer"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(KanbanError):
    """Entity does not exist or is not visible to the caller"""


class ValidationError(KanbanError):
    """Request is missing required data; nothing was changed"""


class BoardConfigurationError(KanbanError):
    """Change would leave the board without a usable (non-AI) column"""


class AiProviderError(KanbanError):
    """Completion provider failed or returned no content.

    Never leaves the AI runner: it is always turned into a failed iteration.
    """
