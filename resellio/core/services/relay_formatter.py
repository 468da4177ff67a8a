"""Normalise publish-job reports coming back from a relay (n8n/Make/Graph)."""

from __future__ import annotations

from typing import Any

ALLOWED_CHANNELS = ("instagram", "facebook_page")
DEFAULT_CHANNEL = "instagram"
RELAY_STATUSES = ("scheduled", "published", "failed")
KNOWN_ERROR_MESSAGES = ("account_not_connected", "token_expired", "no_media")
MAX_MESSAGE_LENGTH = 80


def to_channel(value: Any) -> str:
    return value if value in ALLOWED_CHANNELS else DEFAULT_CHANNEL


def normalize_error_message(value: Any) -> str:
    if not value:
        return "unknown_error"
    normalized = "_".join(str(value).lower().strip().split())
    if normalized in KNOWN_ERROR_MESSAGES:
        return normalized
    return normalized[:MAX_MESSAGE_LENGTH] or "unknown_error"


def resolve_status(job: dict[str, Any]) -> str:
    status = job.get("status")
    if status in RELAY_STATUSES:
        return status
    if job.get("published") is True:
        return "published"
    if job.get("scheduled") is True or job.get("success") is True:
        return "scheduled"
    return "failed"


def _job_id(job: dict[str, Any]) -> str:
    value = job.get("job_id")
    if value is None:
        value = job.get("jobId")
    return "" if value is None else str(value)


def to_relay_result(job: Any) -> dict[str, str]:
    if not isinstance(job, dict):
        job = {}
    status = resolve_status(job)

    if status == "failed":
        raw = job.get("error")
        if raw is None:
            raw = job.get("message")
        message = normalize_error_message(raw)
    else:
        message = status

    return {
        "channel": to_channel(job.get("channel")),
        "job_id": _job_id(job),
        "status": status,
        "message": message,
    }


def format_relay(body: Any) -> dict[str, Any]:
    """Accept a list of jobs or ``{"jobs": [...]}``; anything else yields no results."""
    if isinstance(body, list):
        jobs = body
    elif isinstance(body, dict):
        jobs = body.get("jobs")
    else:
        jobs = None
    if not isinstance(jobs, list) or not jobs:
        return {"ok": False, "results": []}

    results = [to_relay_result(job) for job in jobs]
    ok = any(result["status"] in ("scheduled", "published") for result in results)
    return {"ok": ok, "results": results}
