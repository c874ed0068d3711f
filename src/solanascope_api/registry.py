from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

TOKEN_PROGRAM_ID = 'TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA'


def _frozen(table: dict[str, dict[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
    return MappingProxyType({key: MappingProxyType(dict(value)) for key, value in table.items()})


PROTOCOLS: Mapping[str, Mapping[str, str]] = _frozen(
    {
        'jupiter': {
            'name': 'Jupiter',
            'program_id': 'JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4',
            'type': 'dex-aggregator',
            'website': 'https://jup.ag',
        },
        'raydium': {
            'name': 'Raydium',
            'program_id': '675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8',
            'type': 'amm',
            'website': 'https://raydium.io',
        },
        'kamino': {
            'name': 'Kamino Finance',
            'program_id': '6LtLpnUFNByNXLyCoK9wA2MykKAmQNZKBdY8s47dehDc',
            'type': 'yield',
            'website': 'https://kamino.finance',
        },
        'marinade': {
            'name': 'Marinade Finance',
            'program_id': 'MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD',
            'type': 'liquid-staking',
            'website': 'https://marinade.finance',
        },
        'drift': {
            'name': 'Drift Protocol',
            'program_id': 'dRiftyHA39MWEi3m9aunc5MzRF1JYuBsbn6VPcn33UH',
            'type': 'perps',
            'website': 'https://drift.trade',
        },
    }
)

TOKENS: Mapping[str, Mapping[str, Any]] = _frozen(
    {
        'SOL': {'mint': 'So11111111111111111111111111111111111111112', 'name': 'Wrapped SOL', 'decimals': 9},
        'USDC': {'mint': 'EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v', 'name': 'USD Coin', 'decimals': 6},
        'USDT': {'mint': 'Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB', 'name': 'Tether USD', 'decimals': 6},
        'BONK': {'mint': 'DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263', 'name': 'Bonk', 'decimals': 5},
        'JUP': {'mint': 'JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN', 'name': 'Jupiter', 'decimals': 6},
    }
)

# Pyth Hermes feed ids, USD-quoted.
PRICE_FEEDS: Mapping[str, str] = MappingProxyType(
    {
        'SOL': '0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d',
        'BTC': '0xe62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43',
        'ETH': '0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace',
        'USDC': '0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a',
    }
)


def resolve_token(value: str) -> tuple[str, int | None]:
    """Map a registry symbol to (mint, decimals); anything else is taken as a raw mint."""
    token = TOKENS.get(value.upper())
    if token:
        return token['mint'], token['decimals']
    for meta in TOKENS.values():
        if meta['mint'] == value:
            return value, meta['decimals']
    return value, None
