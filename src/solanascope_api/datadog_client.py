from datetime import UTC, datetime
from typing import Any

import httpx

from .schemas import TraceStep
from .settings import settings


def send_analysis_log(
    address: str,
    trace: list[TraceStep],
    risk: dict[str, Any],
    anomaly_count: int,
) -> bool:
    if not settings.dd_api_key or not settings.dd_send_logs:
        return False

    url = f'https://http-intake.logs.{settings.dd_site}/api/v2/logs'
    payload = {
        'ddsource': 'python',
        'service': settings.dd_service,
        'ddtags': f'env:{settings.dd_env},version:{settings.dd_version}',
        'hostname': 'solanascope-api',
        'timestamp': datetime.now(UTC).isoformat(),
        'message': 'wallet_analysis_completed',
        'wallet': address,
        'trace': [step.model_dump() for step in trace],
        'risk': risk,
        'anomaly_count': anomaly_count,
    }
    headers = {'Content-Type': 'application/json', 'DD-API-KEY': settings.dd_api_key}

    with httpx.Client(timeout=settings.timeout_seconds) as client:
        resp = client.post(url, headers=headers, json=[payload])
        resp.raise_for_status()
    return True


def datadog_config_summary() -> dict[str, Any]:
    return {
        'dd_send_logs': settings.dd_send_logs,
        'dd_trace_enabled': settings.dd_trace_enabled,
        'dd_site': settings.dd_site,
        'dd_service': settings.dd_service,
        'dd_env': settings.dd_env,
        'dd_version': settings.dd_version,
        'dd_api_key_present': bool(settings.dd_api_key),
    }
