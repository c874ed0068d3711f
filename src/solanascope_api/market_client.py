from datetime import UTC, datetime
from typing import Any

import httpx

from .logging_config import get_logger
from .registry import PRICE_FEEDS, resolve_token
from .schemas import PriceQuote, SwapQuote, TokenMetadata

logger = get_logger(__name__)


class MarketDataError(RuntimeError):
    pass


class MarketDataNotFound(MarketDataError):
    pass


def _get_json(client: httpx.Client, url: str, params: dict[str, Any] | None = None) -> Any:
    try:
        resp = client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            raise MarketDataNotFound(f'Not found upstream: {url}') from exc
        raise MarketDataError(f'Upstream HTTP error: {exc.response.status_code}') from exc
    except httpx.HTTPError as exc:
        raise MarketDataError(f'Upstream transport error: {exc}') from exc


def fetch_price(client: httpx.Client, hermes_url: str, symbol: str) -> PriceQuote:
    symbol = symbol.upper()
    feed_id = PRICE_FEEDS.get(symbol)
    if feed_id is None:
        raise MarketDataNotFound(f"No price feed for '{symbol}'")

    payload = _get_json(
        client,
        f'{hermes_url.rstrip("/")}/v2/updates/price/latest',
        params={'ids[]': feed_id, 'parsed': 'true'},
    )
    parsed = payload.get('parsed') or []
    if not parsed:
        raise MarketDataError(f"Empty price update for '{symbol}'")

    price = parsed[0].get('price', {})
    try:
        expo = int(price['expo'])
        value = int(price['price']) * 10**expo
        confidence = int(price.get('conf', 0)) * 10**expo
    except (KeyError, TypeError, ValueError) as exc:
        raise MarketDataError(f"Malformed price update for '{symbol}': {exc}") from exc

    return PriceQuote(
        symbol=symbol,
        feed_id=feed_id,
        price=value,
        confidence=confidence,
        publish_time=price.get('publish_time'),
        timestamp=datetime.now(UTC).isoformat(),
    )


def fetch_swap_quote(
    client: httpx.Client,
    quote_url: str,
    input_token: str,
    output_token: str,
    amount: float,
    slippage_bps: int = 50,
) -> SwapQuote:
    input_mint, input_decimals = resolve_token(input_token)
    output_mint, _ = resolve_token(output_token)
    if input_decimals is None:
        raise MarketDataNotFound(f"Unknown decimals for input token '{input_token}'")

    raw_amount = int(round(amount * 10**input_decimals))
    payload = _get_json(
        client,
        quote_url,
        params={
            'inputMint': input_mint,
            'outputMint': output_mint,
            'amount': raw_amount,
            'slippageBps': slippage_bps,
        },
    )
    if payload.get('error'):
        raise MarketDataError(str(payload['error']))

    route = []
    for leg in payload.get('routePlan') or []:
        label = leg.get('swapInfo', {}).get('label')
        if label:
            route.append(label)

    try:
        return SwapQuote(
            input_mint=payload.get('inputMint', input_mint),
            output_mint=payload.get('outputMint', output_mint),
            in_amount=int(payload['inAmount']),
            out_amount=int(payload['outAmount']),
            price_impact_pct=float(payload.get('priceImpactPct') or 0),
            slippage_bps=int(payload.get('slippageBps', slippage_bps)),
            route=route,
            timestamp=datetime.now(UTC).isoformat(),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MarketDataError(f'Malformed quote response: {exc}') from exc


def fetch_token_metadata(client: httpx.Client, token_url: str, mint: str) -> TokenMetadata:
    payload = _get_json(client, f'{token_url.rstrip("/")}/{mint}')
    if not isinstance(payload, dict) or not payload:
        raise MarketDataNotFound(f"No metadata for '{mint}'")

    known = {'address', 'name', 'symbol', 'decimals', 'logoURI', 'tags'}
    return TokenMetadata(
        mint=payload.get('address', mint),
        name=payload.get('name'),
        symbol=payload.get('symbol'),
        decimals=payload.get('decimals'),
        logo_uri=payload.get('logoURI'),
        tags=[t for t in payload.get('tags') or [] if isinstance(t, str)],
        extra={k: v for k, v in payload.items() if k not in known},
    )
