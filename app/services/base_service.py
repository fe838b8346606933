from abc import ABC, abstractmethod
from typing import Any

from app.core.exceptions import AppError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for action-dispatching services.

    Public ``execute_*`` methods call :meth:`execute` with an ``action``
    keyword; subclasses route it in :meth:`run`. Anything that escapes
    :meth:`run` reaches callers as an ``AppError``.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Validate the input, then run the requested action.

        Raises:
            AppError: Subclasses of AppError pass through unchanged; any
                other exception is wrapped
        """
        action = kwargs.get("action")
        self.logger.debug(
            f"Executing {self.__class__.__name__}.{action}",
            extra={"service": self.__class__.__name__, "action": action},
        )

        try:
            self.validate(*args, **kwargs)
            return await self.run(*args, **kwargs)

        except AppError:
            raise

        except Exception as e:
            self.logger.error(
                f"Service action {action} failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__, "action": action},
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e) from e

    def validate(self, *args, **kwargs):
        """Reject bad input before :meth:`run` with a ValidationError."""

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Route ``kwargs["action"]`` to its handler."""
