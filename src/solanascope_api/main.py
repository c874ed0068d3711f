from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
import httpx

from .datadog_client import datadog_config_summary, send_analysis_log
from .logging_config import get_logger
from .market_client import (
    MarketDataError,
    MarketDataNotFound,
    fetch_price,
    fetch_swap_quote,
    fetch_token_metadata,
)
from .observability import TraceCollector
from .registry import PRICE_FEEDS, PROTOCOLS, TOKENS
from .schemas import (
    AnalyzeWalletRequest,
    NetworkStats,
    PriceQuote,
    ProgramStatus,
    SwapQuote,
    TokenMetadata,
    TransactionDetails,
    WalletActivityResponse,
    WalletAnalysisResponse,
    WalletAnomalyResponse,
    WalletBalanceResponse,
    WalletRiskResponse,
    WalletSummary,
    WalletTokensResponse,
)
from .scoring import WHALE_THRESHOLD_SOL, detect_anomalies, is_whale, score
from .settings import settings
from .solana_client import (
    LAMPORTS_PER_SOL,
    SolanaRateLimitError,
    SolanaRPCError,
    collect_wallet_snapshot,
    get_account_info,
    get_balance_lamports,
    get_network_stats,
    get_recent_activity,
    get_token_accounts,
    get_token_holdings,
    get_transaction,
)

VERSION = '0.1.0'
ANALYZE_ACTIVITY_LIMIT = 10
ACTIVITY_DEFAULT_LIMIT = 20
RISK_ACTIVITY_LIMIT = 20
ANOMALY_ACTIVITY_LIMIT = 50
MAX_ACTIVITY_LIMIT = 100
TOKENS_IN_SUMMARY = 20

ENDPOINTS = [
    '/health',
    '/protocols',
    '/protocols/{id}/health',
    '/network/stats',
    '/wallet/{address}/balance',
    '/wallet/{address}/tokens',
    '/wallet/{address}/activity',
    '/wallet/{address}/risk',
    '/wallet/{address}/anomalies',
    '/analyze/wallet',
    '/tx/{signature}',
    '/tokens',
    '/price/{symbol}',
    '/quote',
    '/token/{mint}/metadata',
    '/skill.md',
]

SKILL_MD = f"""---
name: solanascope
version: {VERSION}
description: Real-time Solana intelligence API for AI agents
---

# SolanaScope

Real-time Solana intelligence for AI agents: balances, holdings, activity,
risk scores and anomaly flags.

## Endpoints

- GET /health - Service health check
- GET /protocols - List tracked protocols
- GET /protocols/{{id}}/health - Check protocol program status
- GET /network/stats - Solana network statistics
- GET /wallet/{{address}}/balance - Wallet SOL balance
- GET /wallet/{{address}}/tokens - Wallet token holdings
- GET /wallet/{{address}}/activity?limit=20 - Recent signatures (max 100)
- GET /wallet/{{address}}/risk - Risk score and factors
- GET /wallet/{{address}}/anomalies - Anomaly report
- POST /analyze/wallet - Comprehensive wallet analysis
- GET /tx/{{signature}} - Transaction details
- GET /tokens - Known tokens
- GET /price/{{symbol}} - Oracle price
- GET /quote?input=SOL&output=USDC&amount=1 - Swap quote
- GET /token/{{mint}}/metadata - Token metadata

## Usage

```bash
curl -X POST $BASE/analyze/wallet \\
  -H "Content-Type: application/json" \\
  -d '{{"address": "YOUR_WALLET_ADDRESS"}}'
```
"""

logger = get_logger(__name__)

app = FastAPI(title='SolanaScope API', version=VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=['GET', 'POST', 'OPTIONS'],
    allow_headers=['Content-Type', 'Authorization'],
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _looks_like_solana_address(value: str) -> bool:
    if len(value) < 32 or len(value) > 44:
        return False
    allowed = set('123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz')
    return all(ch in allowed for ch in value)


def _require_address(value: str) -> str:
    if not _looks_like_solana_address(value):
        raise HTTPException(status_code=400, detail='Invalid Solana address')
    return value


def _client() -> httpx.Client:
    return httpx.Client(timeout=settings.timeout_seconds)


@contextmanager
def _upstream(step: str) -> Generator[None, None, None]:
    try:
        yield
    except SolanaRateLimitError as exc:
        logger.warning('upstream_rate_limited', step=step, error=str(exc))
        raise HTTPException(
            status_code=503,
            detail='Solana RPC rate limited. Use a private RPC URL in SOLANA_RPC_URL and retry.',
        ) from exc
    except SolanaRPCError as exc:
        logger.error('upstream_rpc_failed', step=step, error=str(exc))
        raise HTTPException(status_code=502, detail=f'Solana RPC request failed: {exc}') from exc
    except MarketDataNotFound as exc:
        logger.info('upstream_not_found', step=step, error=str(exc))
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except MarketDataError as exc:
        logger.error('upstream_market_failed', step=step, error=str(exc))
        raise HTTPException(status_code=502, detail=f'Market data request failed: {exc}') from exc


@app.get('/')
@app.get('/health')
def health() -> dict:
    return {
        'status': 'healthy',
        'service': 'solanascope',
        'version': VERSION,
        'endpoints': ENDPOINTS,
        'rpc_endpoint': 'helius' if 'helius' in settings.solana_rpc_url else 'public',
        'observability': datadog_config_summary(),
        'timestamp': _now(),
    }


@app.get('/skill.md', response_class=PlainTextResponse)
def skill() -> PlainTextResponse:
    return PlainTextResponse(SKILL_MD, media_type='text/markdown')


@app.get('/protocols')
def list_protocols() -> dict:
    protocols = [{'id': pid, **meta} for pid, meta in PROTOCOLS.items()]
    return {'protocols': protocols, 'count': len(protocols)}


@app.get('/protocols/{protocol_id}/health', response_model=ProgramStatus)
def protocol_health(protocol_id: str) -> ProgramStatus:
    protocol = PROTOCOLS.get(protocol_id)
    if protocol is None:
        raise HTTPException(status_code=404, detail=f"Protocol '{protocol_id}' not found")

    with _upstream('protocol_health'), _client() as client:
        account = get_account_info(client, settings.solana_rpc_url, protocol['program_id'])

    return ProgramStatus(
        protocol=protocol_id,
        name=protocol['name'],
        status='active' if account else 'unknown',
        program_exists=bool(account),
        executable=bool(account and account.get('executable')),
        owner=account.get('owner') if account else None,
        checked_at=_now(),
    )


@app.get('/network/stats', response_model=NetworkStats)
def network_stats() -> NetworkStats:
    with _upstream('network_stats'), _client() as client:
        stats = get_network_stats(client, settings.solana_rpc_url)
    return NetworkStats(**stats, timestamp=_now())


@app.get('/wallet/{address}/balance', response_model=WalletBalanceResponse)
def wallet_balance(address: str) -> WalletBalanceResponse:
    _require_address(address)
    with _upstream('wallet_balance'), _client() as client:
        lamports = get_balance_lamports(client, settings.solana_rpc_url, address)
        token_accounts = get_token_accounts(client, settings.solana_rpc_url, address)

    sol_balance = lamports / LAMPORTS_PER_SOL
    return WalletBalanceResponse(
        address=address,
        sol_balance=sol_balance,
        sol_balance_lamports=lamports,
        token_account_count=len(token_accounts),
        is_whale=is_whale(sol_balance),
        whale_threshold=WHALE_THRESHOLD_SOL,
        timestamp=_now(),
    )


@app.get('/wallet/{address}/tokens', response_model=WalletTokensResponse)
def wallet_tokens(address: str) -> WalletTokensResponse:
    _require_address(address)
    with _upstream('wallet_tokens'), _client() as client:
        tokens = get_token_holdings(client, settings.solana_rpc_url, address)
    return WalletTokensResponse(address=address, tokens=tokens, count=len(tokens), timestamp=_now())


@app.get('/wallet/{address}/activity', response_model=WalletActivityResponse)
def wallet_activity(
    address: str, limit: int = Query(default=ACTIVITY_DEFAULT_LIMIT, ge=1, le=MAX_ACTIVITY_LIMIT)
) -> WalletActivityResponse:
    _require_address(address)
    with _upstream('wallet_activity'), _client() as client:
        activity = get_recent_activity(client, settings.solana_rpc_url, address, limit)
    return WalletActivityResponse(address=address, activity=activity, count=len(activity), timestamp=_now())


@app.get('/wallet/{address}/risk', response_model=WalletRiskResponse)
def wallet_risk(address: str) -> WalletRiskResponse:
    _require_address(address)
    trace = TraceCollector(wallet=address)
    with _upstream('wallet_risk'), _client() as client:
        snapshot, activity = collect_wallet_snapshot(
            client, settings.solana_rpc_url, address, RISK_ACTIVITY_LIMIT, trace=trace
        )
    with trace.step('scoring'):
        risk = score(snapshot, activity)
    return WalletRiskResponse(address=address, risk=risk, trace=trace.as_list(), timestamp=_now())


@app.get('/wallet/{address}/anomalies', response_model=WalletAnomalyResponse)
def wallet_anomalies(address: str) -> WalletAnomalyResponse:
    _require_address(address)
    trace = TraceCollector(wallet=address)
    with _upstream('wallet_anomalies'), _client() as client:
        snapshot, activity = collect_wallet_snapshot(
            client, settings.solana_rpc_url, address, ANOMALY_ACTIVITY_LIMIT, trace=trace
        )
    with trace.step('anomaly_detection'):
        report = detect_anomalies(snapshot, activity)
    logger.info('anomalies_detected', wallet=address, count=len(report.anomalies), overall_risk=report.overall_risk)
    return WalletAnomalyResponse(address=address, report=report, trace=trace.as_list(), timestamp=_now())


@app.post('/analyze/wallet', response_model=WalletAnalysisResponse)
def analyze_wallet(payload: AnalyzeWalletRequest) -> WalletAnalysisResponse:
    address = _require_address(payload.address)
    trace = TraceCollector(wallet=address)

    with _upstream('wallet_snapshot'), _client() as client:
        snapshot, activity = collect_wallet_snapshot(
            client, settings.solana_rpc_url, address, ANALYZE_ACTIVITY_LIMIT, trace=trace
        )

    with trace.step('scoring'):
        risk = score(snapshot, activity)
        anomalies = detect_anomalies(snapshot, activity)

    last_active = None
    if activity and activity[0].block_time:
        last_active = datetime.fromtimestamp(activity[0].block_time, UTC).isoformat()

    response = WalletAnalysisResponse(
        address=address,
        summary=WalletSummary(
            sol_balance=snapshot.sol_balance,
            token_count=len(snapshot.token_holdings),
            is_whale=is_whale(snapshot.sol_balance),
            recent_transactions=len(activity),
            last_active=last_active,
        ),
        tokens=snapshot.token_holdings[:TOKENS_IN_SUMMARY],
        risk=risk,
        anomalies=anomalies,
        trace=trace.as_list(),
        timestamp=_now(),
    )
    logger.info('wallet_analyzed', wallet=address, score=risk.score, level=risk.level, factors=risk.factors)
    try:
        send_analysis_log(
            address=address,
            trace=response.trace,
            risk=risk.model_dump(),
            anomaly_count=len(anomalies.anomalies),
        )
    except httpx.HTTPError as exc:
        logger.warning('datadog_log_failed', error=str(exc))
    return response


@app.get('/tx/{signature}', response_model=TransactionDetails)
def transaction(signature: str) -> TransactionDetails:
    with _upstream('transaction'), _client() as client:
        tx = get_transaction(client, settings.solana_rpc_url, signature)
    if tx is None:
        raise HTTPException(status_code=404, detail='Transaction not found')
    return TransactionDetails(**tx, timestamp=_now())


@app.get('/tokens')
def list_tokens() -> dict:
    tokens = [
        {'symbol': symbol, **meta, 'has_price_feed': symbol in PRICE_FEEDS}
        for symbol, meta in TOKENS.items()
    ]
    return {'tokens': tokens, 'count': len(tokens)}


@app.get('/price/{symbol}', response_model=PriceQuote)
def price(symbol: str) -> PriceQuote:
    with _upstream('price'), _client() as client:
        return fetch_price(client, settings.pyth_hermes_url, symbol)


@app.get('/quote', response_model=SwapQuote)
def quote(
    input: str = Query(..., description='Input token symbol or mint'),
    output: str = Query(..., description='Output token symbol or mint'),
    amount: float = Query(..., gt=0, description='Input amount in UI units'),
    slippage_bps: int = Query(default=50, ge=0, le=10_000),
) -> SwapQuote:
    with _upstream('quote'), _client() as client:
        return fetch_swap_quote(client, settings.jupiter_quote_url, input, output, amount, slippage_bps)


@app.get('/token/{mint}/metadata', response_model=TokenMetadata)
def token_metadata(mint: str) -> TokenMetadata:
    _require_address(mint)
    with _upstream('token_metadata'), _client() as client:
        return fetch_token_metadata(client, settings.jupiter_token_url, mint)
