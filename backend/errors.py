class AssistantError(Exception):
    """Base class for errors raised by the assistant backend."""


class GatewayError(AssistantError):
    """The NLU gateway failed: transport error, non-JSON reply or schema mismatch."""


class StorageError(AssistantError):
    """A finalized task or meeting could not be written."""


class ConcurrentUpdateError(AssistantError):
    """The conversation changed between read and write."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(f"Conversation for {user_id} is no longer at version {expected_version}")
        self.user_id = user_id
        self.expected_version = expected_version
