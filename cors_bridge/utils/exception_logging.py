"""
Exception logging helpers for connection-scoped failures.

Bridge pumps and upstream calls can fail with plain exceptions or with
exception groups; both are logged and formatted here without ever raising.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message, listing sub-exceptions of exception groups.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"
    message = _safe_str(exception)
    subs = _sub_exceptions(exception)
    if not subs:
        return message
    details = "; ".join(f"{type(sub).__name__}: {_safe_str(sub)}" for sub in subs)
    return f"{message} (Sub-exceptions: {details})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, one line per sub-exception for exception groups.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[WS-Bridge]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        subs = _sub_exceptions(exception)
        if not subs:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if isinstance(exception, BaseException) else False,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(subs)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub in enumerate(subs):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub).__name__}: {_safe_str(sub)}",
                exc_info=sub if isinstance(sub, BaseException) else False,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception logging failed")
        except Exception:
            pass
