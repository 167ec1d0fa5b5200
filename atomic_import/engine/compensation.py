"""
Compensation stack: undo actions for the writes of one attempt.
"""

from collections.abc import Awaitable, Callable

from atomic_import.observability.logger import get_logger

logger = get_logger(__name__)

Compensation = Callable[[], Awaitable[None]]


class CompensationStack:
    """
    LIFO list of undo actions.

    unwind() runs every action, newest first, even when earlier ones fail,
    and returns the failures instead of raising.
    """

    def __init__(self):
        self._actions: list[tuple[str, Compensation]] = []

    def push(self, description: str, action: Compensation) -> None:
        self._actions.append((description, action))

    def __len__(self) -> int:
        return len(self._actions)

    async def unwind(self) -> list[str]:
        """
        Run and drop all pending actions.

        Returns:
            One "description: error" entry per failed action
        """
        errors: list[str] = []
        while self._actions:
            description, action = self._actions.pop()
            try:
                await action()
            except Exception as e:
                logger.error(
                    f"Compensation failed: {description}: {e}",
                    extra={"compensation": description, "error_type": type(e).__name__},
                )
                errors.append(f"{description}: {e}")
        return errors
