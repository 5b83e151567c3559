# ============================================================================
# WORKER METRICS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Worker - Autoscaling metric
# PURPOSE: Prometheus gauge of ready work for this worker's service
# CREATED: 16 OCT 2026
# ============================================================================
"""
Worker Metrics

Fetches ``availableWorkItems`` for the service from the scheduler process
(GET /service/metrics?serviceID=...) and renders it as a Prometheus gauge.
The reported value is availableWorkItems + 1 so a scaler keeps at least
one worker running.
"""

import httpx

METRICS_TIMEOUT_SECONDS = 60.0


def render_ready_metric(service_id: str, available_work_items: int) -> str:
    return (
        "# HELP num_ready_work_items Ready work items count for a task-runner service.\n"
        "# TYPE num_ready_work_items gauge\n"
        f'num_ready_work_items{{service_id="{service_id}"}} {available_work_items + 1}\n'
    )


async def fetch_ready_metric(client: httpx.AsyncClient, backend_url: str, service_id: str) -> str:
    """
    Query the scheduler and render the gauge.

    Raises:
        httpx.HTTPError: If the scheduler cannot be reached or does not
            answer 200
    """
    response = await client.get(
        f"{backend_url}/service/metrics",
        params={"serviceID": service_id},
        timeout=METRICS_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    if response.status_code != 200:
        raise httpx.HTTPStatusError(
            f"Unexpected status {response.status_code}",
            request=response.request,
            response=response,
        )
    available = int(response.json()["availableWorkItems"])
    return render_ready_metric(service_id, available)


__all__ = ["render_ready_metric", "fetch_ready_metric"]
