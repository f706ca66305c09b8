# src/og_pipeline/core/error_handling.py

import functools
import inspect
import logging
from typing import Any, Callable, Dict, List, Type

from botocore.exceptions import BotoCoreError, ClientError as BotocoreClientError
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from .exceptions import OgPipelineError, RenderError, StorageError


def _translate(
    func_name: str, exc: Exception, error_cls: Type[OgPipelineError], key: str
) -> OgPipelineError:
    if isinstance(exc, BotocoreClientError):
        code = exc.response.get("Error", {}).get("Code", "Unknown")
        message = f"Storage operation failed in {func_name} ({code}): {exc}"
    elif isinstance(exc, BotoCoreError):
        message = f"Storage client error in {func_name}: {exc}"
    elif isinstance(exc, PILUnidentifiedImageError):
        return RenderError(f"Failed to identify image in {func_name}: {exc}")
    else:
        message = f"Error in {func_name}: {exc}"

    if issubclass(error_cls, StorageError):
        return error_cls(message, key=key)
    return error_cls(message)


def with_error_handling(error_cls: Type[OgPipelineError] = OgPipelineError):
    """
    Decorator translating library exceptions into the pipeline's hierarchy.

    Works for plain and ``async`` functions. Pipeline errors pass through
    untouched; anything else is logged and re-raised as ``error_cls`` with
    the original exception chained. A ``key`` keyword argument, when present,
    is recorded on storage errors.
    """

    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__ + "." + func.__name__)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except OgPipelineError:
                    raise
                except Exception as e:
                    logger.debug(f"Error in '{func.__name__}': {e}", exc_info=True)
                    raise _translate(
                        func.__name__, e, error_cls, str(kwargs.get("key", ""))
                    ) from e

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except OgPipelineError:
                raise
            except Exception as e:
                logger.debug(f"Error in '{func.__name__}': {e}", exc_info=True)
                raise _translate(
                    func.__name__, e, error_cls, str(kwargs.get("key", ""))
                ) from e

        return wrapper

    return decorator


class RunErrorCollector:
    """
    Context manager for a run over catalog items to collect and summarize errors.

    Per-item failures are reported through ``add_error`` and never abort the
    run; the summary is logged when the ``with`` block exits.
    """

    def __init__(self, operation_name: str = "OG image run"):
        self.operation_name = operation_name
        self.errors: List[Dict[str, str]] = []
        self.logger = logging.getLogger(
            self.__class__.__module__ + "." + self.__class__.__name__
        )

    def __enter__(self) -> "RunErrorCollector":
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Error {i + 1}/{len(self.errors)} for item "
                    f"'{error_detail['item']}': {error_detail['error']}"
                )
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Unreported exceptions still propagate
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item") -> None:
        """Report an error for a specific item inside the ``with`` block."""
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(
            f"Error added for item '{item_identifier}' in {self.operation_name}: "
            f"{error_message}"
        )

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
