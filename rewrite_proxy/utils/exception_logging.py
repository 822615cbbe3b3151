"""
Exception logging helpers that never raise themselves.

Used at the proxy boundary, where a failure while logging must not replace the
original error response.
"""

import logging


def _safe_str(obj) -> str:
    """Best-effort string form of ``obj``, even when ``__str__`` is broken."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def _cause_chain(exception: BaseException) -> list[BaseException]:
    chain = []
    current = exception.__cause__
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__
    return chain


def format_exception_message(exception: Exception) -> str:
    """
    One-line description of ``exception``: its type and message, followed by the
    sub-exceptions of an exception group or the explicit ``raise ... from`` chain.
    """
    if exception is None:
        return "None"
    try:
        message = f"{type(exception).__name__}: {_safe_str(exception)}"
        nested = _sub_exceptions(exception) or _cause_chain(exception)
        if nested:
            details = "; ".join(
                f"{type(e).__name__}: {_safe_str(e)}" for e in nested
            )
            message = f"{message} (caused by: {details})"
        return message
    except Exception:
        return "<exception (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log ``exception`` with its traceback, plus each sub-exception when it is an
    exception group.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        sub_exceptions = _sub_exceptions(exception)
        if sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                logger.log(
                    level,
                    f"{safe_prefix} Sub-exception {i+1}: {format_exception_message(sub_exc)}",
                    exc_info=sub_exc,
                )
            return
        logger.log(
            level,
            f"{safe_prefix} Exception: {format_exception_message(exception)}",
            exc_info=exception if exception is not None else False,
        )
    except Exception:
        try:
            logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass
