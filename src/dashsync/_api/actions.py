"""Mutating job endpoints.

Endpoints:
  - /api/processing/jobs/{id}/{action}
  - /api/processing/jobs/{id}          (DELETE)
  - /api/processing/start
  - /api/scheduler/jobs/{name}/{action}
  - /api/scheduler/jobs/{name}/trigger
  - /api/scheduler/config              (PUT)

The resulting state changes are not applied locally; they reach the store
through the push channel or the next poll.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from dashsync._api._common import unwrap_envelope
from dashsync._constants import (
    PROCESSING_ACTIONS,
    PROCESSING_JOBS_ENDPOINT,
    PROCESSING_START_ENDPOINT,
    SCHEDULER_ACTIONS,
    SCHEDULER_CONFIG_ENDPOINT,
    SCHEDULER_JOBS_ENDPOINT,
)
from dashsync._transport import Transport


async def processing_job_action(transport: Transport, credential: str, job_id: str, action: str) -> Any:
    if action not in PROCESSING_ACTIONS:
        raise ValueError(f"unsupported processing action {action!r}")
    endpoint = f"{PROCESSING_JOBS_ENDPOINT}/{quote(str(job_id), safe='')}/{action}"
    body = await transport.request("POST", endpoint, credential=credential)
    return unwrap_envelope(endpoint, body)


async def delete_processing_job(transport: Transport, credential: str, job_id: str) -> Any:
    endpoint = f"{PROCESSING_JOBS_ENDPOINT}/{quote(str(job_id), safe='')}"
    body = await transport.request("DELETE", endpoint, credential=credential)
    return unwrap_envelope(endpoint, body)


async def start_processing_job(
    transport: Transport,
    credential: str,
    *,
    asset_id: str,
    job_type: str,
    options: Mapping[str, Any] | None = None,
) -> Any:
    payload = {"assetId": asset_id, "type": job_type, "options": dict(options or {})}
    body = await transport.request("POST", PROCESSING_START_ENDPOINT, credential=credential, payload=payload)
    return unwrap_envelope(PROCESSING_START_ENDPOINT, body)


async def scheduler_job_action(transport: Transport, credential: str, job_name: str, action: str) -> Any:
    if action not in SCHEDULER_ACTIONS:
        raise ValueError(f"unsupported scheduler action {action!r}")
    endpoint = f"{SCHEDULER_JOBS_ENDPOINT}/{quote(job_name, safe='')}/{action}"
    body = await transport.request("POST", endpoint, credential=credential)
    return unwrap_envelope(endpoint, body)


async def trigger_scheduler_job(transport: Transport, credential: str, job_name: str) -> Any:
    endpoint = f"{SCHEDULER_JOBS_ENDPOINT}/{quote(job_name, safe='')}/trigger"
    body = await transport.request("POST", endpoint, credential=credential)
    return unwrap_envelope(endpoint, body)


async def update_scheduler_config(transport: Transport, credential: str, config: Mapping[str, Any]) -> Any:
    body = await transport.request("PUT", SCHEDULER_CONFIG_ENDPOINT, credential=credential, payload=config)
    return unwrap_envelope(SCHEDULER_CONFIG_ENDPOINT, body)
