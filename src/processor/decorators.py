"""
Wrappers composed around the event handlers.

``log_handler`` traces entry and exit and logs failures before re-raising.
``validate_payload`` turns the raw payload dict into its pydantic model so the
handler body only ever sees validated data.
"""

import functools
from typing import Any, Awaitable, Callable, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import EventValidationError
from core.log import get_logger, sanitize_for_log

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Handler = Callable[..., Awaitable[Any]]


def validate_payload(model: Type[ModelT]) -> Callable[[Handler], Handler]:
    """Validate the handler's payload argument against ``model``.

    Already-validated instances pass through. Validation failures raise
    ``EventValidationError`` before the handler opens a transaction.
    """

    def decorator(func: Handler) -> Handler:
        @functools.wraps(func)
        async def wrapper(self, payload: Any, *args, **kwargs):
            if not isinstance(payload, model):
                if not isinstance(payload, Mapping):
                    raise EventValidationError(
                        f"{model.__name__} expects an object, got {type(payload).__name__}"
                    )
                try:
                    payload = model.model_validate(payload)
                except ValidationError as exc:
                    raise EventValidationError(
                        f"Invalid {model.__name__}: {exc}"
                    ) from exc
            return await func(self, payload, *args, **kwargs)

        return wrapper

    return decorator


def log_handler(func: Handler) -> Handler:
    """Log ENTER/EXIT of a handler at DEBUG and any error at ERROR."""
    name = func.__qualname__

    @functools.wraps(func)
    async def wrapper(self, payload: Any, *args, **kwargs):
        if isinstance(payload, BaseModel):
            logged = payload.model_dump(by_alias=True)
        else:
            logged = payload
        logger.debug("ENTER %s: %s", name, sanitize_for_log(logged))
        try:
            result = await func(self, payload, *args, **kwargs)
        except Exception as exc:
            logger.error("%s failed: %s: %s", name, type(exc).__name__, exc)
            raise
        logger.debug("EXIT %s", name)
        return result

    return wrapper
