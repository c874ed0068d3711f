"""
Tests for step tracing and Datadog log shipping.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from solanascope_api import datadog_client, observability
from solanascope_api.observability import TraceCollector
from solanascope_api.schemas import TraceStep
from solanascope_api.settings import settings


def test_trace_collector_records_success_and_failure():
    trace = TraceCollector()
    with trace.step('get_recent_activity', detail='limit=10'):
        pass
    with pytest.raises(ValueError):
        with trace.step('scoring'):
            raise ValueError('bad input')

    ok, failed = trace.as_list()
    assert (ok.step, ok.ok, ok.detail) == ('get_recent_activity', True, 'limit=10')
    assert (failed.step, failed.ok, failed.detail) == ('scoring', False, 'bad input')
    assert ok.duration_ms >= 0


def test_trace_call_tags_span_with_wallet(monkeypatch):
    fake_tracer = MagicMock()
    monkeypatch.setattr(observability, 'tracer', fake_tracer)
    trace = TraceCollector(wallet='Wallet111')

    assert trace.call('get_balance', lambda a, b: a + b, 2, 3, detail='x') == 5

    fake_tracer.trace.assert_called_once()
    assert fake_tracer.trace.call_args.kwargs['resource'] == 'get_balance'
    span = fake_tracer.trace.return_value
    span.set_tag.assert_any_call('wallet', 'Wallet111')
    span.set_tag.assert_any_call('detail', 'x')
    span.finish.assert_called_once()
    [step] = trace.as_list()
    assert (step.step, step.ok) == ('get_balance', True)


def test_analysis_log_skipped_without_key(monkeypatch):
    monkeypatch.setattr(settings, 'dd_api_key', None)
    assert datadog_client.send_analysis_log('wallet', [], {}, 0) is False


def test_analysis_log_posts_payload(monkeypatch):
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(202)

    real_client = httpx.Client
    monkeypatch.setattr(settings, 'dd_api_key', 'dd-test-key')
    monkeypatch.setattr(settings, 'dd_send_logs', True)
    monkeypatch.setattr(
        datadog_client.httpx,
        'Client',
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    trace = [TraceStep(step='scoring', duration_ms=1, ok=True)]
    assert datadog_client.send_analysis_log('wallet', trace, {'score': 60}, 2) is True

    [request] = sent
    assert request.headers['DD-API-KEY'] == 'dd-test-key'
    [entry] = json.loads(request.content)
    assert entry['message'] == 'wallet_analysis_completed'
    assert entry['risk'] == {'score': 60}
    assert entry['anomaly_count'] == 2
    assert entry['trace'][0]['step'] == 'scoring'


def test_config_summary_hides_key(monkeypatch):
    monkeypatch.setattr(settings, 'dd_api_key', 'secret')
    summary = datadog_client.datadog_config_summary()
    assert summary['dd_api_key_present'] is True
    assert 'secret' not in summary.values()
