"""
Route-level tests through TestClient with every upstream faked.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx

from solanascope_api import main
from solanascope_api.main import ACTIVITY_DEFAULT_LIMIT

from .factories import USDC_MINT, WALLET, make_activity, signature_entries, token_account


def _wallet_rpc(upstream, lamports: int, holdings: list, records: list) -> None:
    upstream.rpc.update(
        {
            'getBalance': {'value': lamports},
            'getTokenAccountsByOwner': {'value': holdings},
            'getSignaturesForAddress': lambda params: signature_entries(records[: params[1]['limit']]),
        }
    )


def test_health(api):
    resp = api.get('/health')
    assert resp.status_code == 200
    body = resp.json()
    assert body['status'] == 'healthy'
    assert body['service'] == 'solanascope'
    assert '/analyze/wallet' in body['endpoints']
    assert body['rpc_endpoint'] in {'helius', 'public'}
    assert api.get('/').json()['status'] == 'healthy'


def test_skill_markdown(api):
    resp = api.get('/skill.md')
    assert resp.status_code == 200
    assert resp.headers['content-type'].startswith('text/markdown')
    assert 'POST /analyze/wallet' in resp.text


def test_cors_preflight(api):
    resp = api.options(
        '/analyze/wallet',
        headers={'Origin': 'https://agent.example', 'Access-Control-Request-Method': 'POST'},
    )
    assert resp.status_code == 200
    assert resp.headers['access-control-allow-origin'] == '*'


def test_protocols(api):
    body = api.get('/protocols').json()
    assert body['count'] == 5
    assert {p['id'] for p in body['protocols']} == {'jupiter', 'raydium', 'kamino', 'marinade', 'drift'}


def test_protocol_health(api, upstream):
    upstream.rpc['getAccountInfo'] = {
        'value': {'executable': True, 'owner': 'BPFLoaderUpgradeab1e11111111111111111111111', 'lamports': 1}
    }
    body = api.get('/protocols/jupiter/health').json()
    assert body['status'] == 'active'
    assert body['executable'] is True
    assert body['name'] == 'Jupiter'


def test_unknown_protocol(api, upstream):
    resp = api.get('/protocols/nope/health')
    assert resp.status_code == 404
    assert upstream.calls == []


def test_network_stats(api, upstream):
    upstream.rpc.update(
        {
            'getSlot': 10,
            'getBlockHeight': 9,
            'getEpochInfo': {'epoch': 1, 'slotIndex': 1, 'slotsInEpoch': 3},
            'getSupply': {'value': {'total': 3 * 10**9, 'circulating': 2 * 10**9}},
        }
    )
    body = api.get('/network/stats').json()
    assert body['epoch_progress'] == '33.33%'
    assert body['circulating_supply'] == 2


def test_invalid_address_rejected(api, upstream):
    resp = api.get('/wallet/not-a-wallet/balance')
    assert resp.status_code == 400
    assert resp.json()['detail'] == 'Invalid Solana address'
    assert upstream.calls == []


def test_wallet_balance_whale(api, upstream):
    _wallet_rpc(upstream, 12_000 * 10**9, [token_account(USDC_MINT, 0)], [])
    body = api.get(f'/wallet/{WALLET}/balance').json()
    assert body['sol_balance'] == 12_000
    assert body['sol_balance_lamports'] == 12_000 * 10**9
    assert body['token_account_count'] == 1
    assert body['is_whale'] is True


def test_wallet_tokens(api, upstream):
    _wallet_rpc(upstream, 0, [token_account(USDC_MINT, 7), token_account('Empty', 0)], [])
    body = api.get(f'/wallet/{WALLET}/tokens').json()
    assert body['count'] == 1
    assert body['tokens'][0]['mint'] == USDC_MINT
    assert body['tokens'][0]['account'] == 'Acct' + USDC_MINT[:8]


def test_wallet_activity_limits(api, upstream):
    _wallet_rpc(upstream, 0, [], make_activity(40))
    body = api.get(f'/wallet/{WALLET}/activity').json()
    assert body['count'] == ACTIVITY_DEFAULT_LIMIT == 20
    assert api.get(f'/wallet/{WALLET}/activity', params={'limit': 5}).json()['count'] == 5
    assert api.get(f'/wallet/{WALLET}/activity', params={'limit': 101}).status_code == 422
    assert api.get(f'/wallet/{WALLET}/activity', params={'limit': 0}).status_code == 422


def test_wallet_risk_uses_twenty_records(api, upstream):
    _wallet_rpc(upstream, 5 * 10**9, [token_account(USDC_MINT, 1)], make_activity(40, step=25))
    body = api.get(f'/wallet/{WALLET}/risk').json()
    assert body['address'] == WALLET
    assert body['risk'] == {'score': 15, 'level': 'low', 'factors': ['high_frequency_activity']}
    steps = [step['step'] for step in body['trace']]
    assert sorted(steps[:3]) == ['get_balance', 'get_recent_activity', 'get_token_holdings']
    assert steps[3:] == ['scoring']


def test_wallet_anomalies(api, upstream):
    _wallet_rpc(upstream, 1_000_000, [], make_activity(60, step=None))
    body = api.get(f'/wallet/{WALLET}/anomalies').json()
    assert body['report']['overall_risk'] == 'high'
    assert [a['type'] for a in body['report']['anomalies']] == ['drained_wallet']
    steps = [step['step'] for step in body['trace']]
    assert steps[-1] == 'anomaly_detection'
    assert {'get_balance', 'get_token_holdings', 'get_recent_activity'} <= set(steps)


def test_analyze_wallet(api, upstream):
    records = make_activity(12, step=None, failed={0, 1, 2, 3})
    records[0] = records[0].model_copy(update={'block_time': 1_700_000_000})
    _wallet_rpc(upstream, 50_000_000, [], records)

    resp = api.post('/analyze/wallet', json={'address': WALLET})
    assert resp.status_code == 200
    body = resp.json()
    assert body['summary'] == {
        'sol_balance': 0.05,
        'token_count': 0,
        'is_whale': False,
        'recent_transactions': 10,
        'last_active': '2023-11-14T22:13:20+00:00',
    }
    assert body['risk'] == {'score': 30, 'level': 'medium', 'factors': ['low_sol_balance', 'no_token_holdings']}
    assert [a['type'] for a in body['anomalies']['anomalies']] == ['high_failure_rate']
    steps = [step['step'] for step in body['trace']]
    assert sorted(steps[:3]) == ['get_balance', 'get_recent_activity', 'get_token_holdings']
    assert steps[3:] == ['scoring']
    assert all(step['ok'] for step in body['trace'])


def test_analyze_wallet_empty(api, upstream):
    _wallet_rpc(upstream, 0, [], [])
    body = api.post('/analyze/wallet', json={'address': WALLET}).json()
    assert body['risk']['score'] == 60
    assert body['risk']['level'] == 'high'
    assert body['summary']['last_active'] is None


def test_analyze_wallet_requires_address(api):
    assert api.post('/analyze/wallet', json={}).status_code == 422


def test_rate_limited_rpc_maps_to_503(api, upstream, monkeypatch):
    monkeypatch.setattr('solanascope_api.solana_client.time.sleep', lambda s: None)
    upstream.rpc['getBalance'] = httpx.Response(429)
    upstream.rpc['getTokenAccountsByOwner'] = {'value': []}
    resp = api.get(f'/wallet/{WALLET}/balance')
    assert resp.status_code == 503


def test_rpc_error_maps_to_502(api, upstream):
    upstream.rpc['getBalance'] = httpx.Response(200, json={'jsonrpc': '2.0', 'id': 1, 'error': {'code': -1}})
    upstream.rpc['getTokenAccountsByOwner'] = {'value': []}
    upstream.rpc['getSignaturesForAddress'] = []
    resp = api.get(f'/wallet/{WALLET}/risk')
    assert resp.status_code == 502


def test_transaction_not_found(api, upstream):
    upstream.rpc['getTransaction'] = None
    assert api.get('/tx/5abc').status_code == 404


def test_tokens_registry(api):
    body = api.get('/tokens').json()
    by_symbol = {t['symbol']: t for t in body['tokens']}
    assert by_symbol['USDC']['mint'] == USDC_MINT
    assert by_symbol['SOL']['has_price_feed'] is True
    assert by_symbol['BONK']['has_price_feed'] is False


def test_price_unknown_symbol(api):
    assert api.get('/price/DOGE').status_code == 404


def test_not_found_is_logged(api, monkeypatch):
    log = MagicMock()
    monkeypatch.setattr(main, 'logger', log)
    assert api.get('/price/DOGE').status_code == 404
    log.info.assert_called_once()
    event = log.info.call_args
    assert event.args == ('upstream_not_found',)
    assert event.kwargs['step'] == 'price'
    assert 'DOGE' in event.kwargs['error']


def test_quote_upstream_failure(api, upstream):
    upstream.routes['/v6/quote'] = lambda request: httpx.Response(503)
    resp = api.get('/quote', params={'input': 'SOL', 'output': 'USDC', 'amount': 1})
    assert resp.status_code == 502


def test_quote_rejects_non_positive_amount(api):
    assert api.get('/quote', params={'input': 'SOL', 'output': 'USDC', 'amount': 0}).status_code == 422
