"""
Job handlers, looked up by the payload's job_type.

A job can run more than once (a worker dies mid-job and its lease expires,
or a failure is retried), so handlers must tolerate repeats.
"""

import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from jobrotor.types.job import JobContext, JobPayload, JobResult

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobContext], JobResult]

_handlers: dict[str, JobHandler] = {}


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Register the decorated function as the handler for job_type.

    Registering the same job_type again replaces the earlier handler.
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        return handler
    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    return sorted(_handlers)


@register_handler("echo")
def handle_echo(context: JobContext) -> JobResult:
    """Return the payload unchanged."""
    return JobResult(success=True, output={"echo": context.payload})


@register_handler("sleep")
def handle_sleep(context: JobContext) -> JobResult:
    """
    Hold the worker busy on the job's queue for data.duration_seconds.

    Useful for watching depth limits keep other workers off a queue family.
    """
    duration = float(context.payload.get("data", {}).get("duration_seconds", 1))
    logger.info(
        f"Sleeping {duration}s on {context.queue}",
        extra={"job_id": str(context.job_id)}
    )
    time.sleep(duration)
    return JobResult(success=True, output={"slept_for": duration})


@register_handler("failing_job")
def handle_failing_job(context: JobContext) -> JobResult:
    return JobResult(
        success=False,
        error=f"Intentional failure on attempt {context.attempt}",
    )


def execute_job(context: JobContext) -> JobResult:
    """
    Run the handler for a job and time it.

    Invalid payloads, unknown job types and handler exceptions all become
    failed results, so the caller only has to decide between complete and
    retry.

    Args:
        context: The job being executed.

    Returns:
        The handler's result, with duration_ms filled in.
    """
    try:
        payload = JobPayload.model_validate(context.payload)
    except ValidationError as e:
        logger.error(
            "Invalid job payload",
            extra={"job_id": str(context.job_id), "queue": context.queue}
        )
        return JobResult(success=False, error=f"Invalid payload: {e.error_count()} errors")

    handler = get_handler(payload.job_type)
    if handler is None:
        logger.error(
            f"No handler for job type: {payload.job_type}",
            extra={"job_id": str(context.job_id), "queue": context.queue}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {payload.job_type}",
        )

    started = time.perf_counter()
    try:
        result = handler(context)
    except Exception as e:
        logger.exception(
            f"Handler for {payload.job_type} raised",
            extra={"job_id": str(context.job_id), "queue": context.queue}
        )
        result = JobResult(success=False, error=f"Handler exception: {e}")

    if result.duration_ms is None:
        result.duration_ms = (time.perf_counter() - started) * 1000
    return result
