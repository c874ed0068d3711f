from concurrent.futures import ThreadPoolExecutor
import time
from typing import Any

import httpx

from .logging_config import get_logger
from .observability import TraceCollector
from .registry import TOKEN_PROGRAM_ID
from .schemas import ActivityRecord, TokenHolding, WalletSnapshot

LAMPORTS_PER_SOL = 1_000_000_000

logger = get_logger(__name__)


class SolanaRPCError(RuntimeError):
    pass


class SolanaRateLimitError(SolanaRPCError):
    pass


def _rpc(client: httpx.Client, url: str, method: str, params: list[Any]) -> Any:
    payload = {'jsonrpc': '2.0', 'id': 1, 'method': method, 'params': params}
    last_error: Exception | None = None
    for attempt in range(4):
        try:
            response = client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
            if data.get('error'):
                raise SolanaRPCError(str(data['error']))
            return data.get('result')
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                last_error = exc
                if attempt < 3:
                    logger.warning('rpc_rate_limited', method=method, attempt=attempt + 1)
                    time.sleep(0.6 * (attempt + 1))
                    continue
                raise SolanaRateLimitError('Solana RPC rate limited (HTTP 429)') from exc
            raise SolanaRPCError(f'Solana RPC HTTP error: {exc.response.status_code}') from exc
        except httpx.HTTPError as exc:
            last_error = exc
            if attempt < 3:
                logger.warning('rpc_transport_error', method=method, attempt=attempt + 1, error=str(exc))
                time.sleep(0.4 * (attempt + 1))
                continue
            raise SolanaRPCError(f'Solana RPC transport error: {exc}') from exc
    raise SolanaRPCError(f'Solana RPC failed: {last_error}')


def _value(result: Any) -> Any:
    # Most account-level methods wrap the payload in {context, value}.
    if isinstance(result, dict) and 'value' in result:
        return result['value']
    return result


def get_balance_lamports(client: httpx.Client, url: str, address: str) -> int:
    return int(_value(_rpc(client, url, 'getBalance', [address])) or 0)


def get_balance(client: httpx.Client, url: str, address: str) -> float:
    return get_balance_lamports(client, url, address) / LAMPORTS_PER_SOL


def get_token_accounts(client: httpx.Client, url: str, address: str) -> list[dict[str, Any]]:
    result = _rpc(
        client,
        url,
        'getTokenAccountsByOwner',
        [address, {'programId': TOKEN_PROGRAM_ID}, {'encoding': 'jsonParsed'}],
    )
    return _value(result) or []


def _holding_from_account(account: dict[str, Any]) -> TokenHolding | None:
    info = account.get('account', {}).get('data', {}).get('parsed', {}).get('info', {})
    mint = info.get('mint')
    if not isinstance(mint, str):
        return None
    amount = info.get('tokenAmount', {})
    return TokenHolding(
        mint=mint,
        ui_balance=float(amount.get('uiAmount') or 0),
        decimals=amount.get('decimals'),
        account=account.get('pubkey'),
    )


def get_token_holdings(client: httpx.Client, url: str, address: str) -> list[TokenHolding]:
    holdings = []
    for account in get_token_accounts(client, url, address):
        holding = _holding_from_account(account)
        if holding is not None and holding.ui_balance > 0:
            holdings.append(holding)
    return holdings


def get_recent_activity(client: httpx.Client, url: str, address: str, limit: int) -> list[ActivityRecord]:
    signatures = _rpc(client, url, 'getSignaturesForAddress', [address, {'limit': limit}]) or []
    records = []
    for sig in signatures:
        signature = sig.get('signature')
        if not signature:
            continue
        records.append(
            ActivityRecord(
                signature=signature,
                block_time=sig.get('blockTime'),
                failed=sig.get('err') is not None,
                slot=sig.get('slot'),
                memo=sig.get('memo'),
            )
        )
    return records


def get_account_info(client: httpx.Client, url: str, address: str) -> dict[str, Any] | None:
    return _value(_rpc(client, url, 'getAccountInfo', [address, {'encoding': 'base64'}]))


def get_network_stats(client: httpx.Client, url: str) -> dict[str, Any]:
    with ThreadPoolExecutor(max_workers=4) as pool:
        slot = pool.submit(_rpc, client, url, 'getSlot', [])
        block_height = pool.submit(_rpc, client, url, 'getBlockHeight', [])
        epoch_info = pool.submit(_rpc, client, url, 'getEpochInfo', [])
        supply = pool.submit(_rpc, client, url, 'getSupply', [])
        epoch = epoch_info.result()
        supply_value = _value(supply.result()) or {}
        stats = {
            'slot': slot.result(),
            'block_height': block_height.result(),
            'epoch': epoch['epoch'],
            'slot_index': epoch['slotIndex'],
            'slots_in_epoch': epoch['slotsInEpoch'],
        }
    stats['epoch_progress'] = f"{stats['slot_index'] / stats['slots_in_epoch'] * 100:.2f}%"
    stats['total_supply'] = supply_value.get('total', 0) / LAMPORTS_PER_SOL
    stats['circulating_supply'] = supply_value.get('circulating', 0) / LAMPORTS_PER_SOL
    return stats


def _account_keys(tx: dict[str, Any]) -> list[str]:
    keys = tx.get('transaction', {}).get('message', {}).get('accountKeys', [])
    out: list[str] = []
    for key in keys:
        if isinstance(key, str):
            out.append(key)
        elif isinstance(key, dict):
            pubkey = key.get('pubkey')
            if isinstance(pubkey, str):
                out.append(pubkey)
    return out


def get_transaction(client: httpx.Client, url: str, signature: str) -> dict[str, Any] | None:
    tx = _rpc(
        client,
        url,
        'getTransaction',
        [signature, {'encoding': 'jsonParsed', 'maxSupportedTransactionVersion': 0}],
    )
    if not tx:
        return None
    meta = tx.get('meta') or {}
    return {
        'signature': signature,
        'slot': tx.get('slot'),
        'block_time': tx.get('blockTime'),
        'success': meta.get('err') is None,
        'fee': meta.get('fee'),
        'compute_units_consumed': meta.get('computeUnitsConsumed'),
        'accounts': _account_keys(tx),
    }


def collect_wallet_snapshot(
    client: httpx.Client,
    rpc_url: str,
    address: str,
    activity_limit: int,
    trace: TraceCollector | None = None,
) -> tuple[WalletSnapshot, list[ActivityRecord]]:
    if trace is None:
        trace = TraceCollector(wallet=address)
    with ThreadPoolExecutor(max_workers=3) as pool:
        balance = pool.submit(trace.call, 'get_balance', get_balance, client, rpc_url, address)
        holdings = pool.submit(trace.call, 'get_token_holdings', get_token_holdings, client, rpc_url, address)
        activity = pool.submit(
            trace.call,
            'get_recent_activity',
            get_recent_activity,
            client,
            rpc_url,
            address,
            activity_limit,
            detail=f'limit={activity_limit}',
        )
        snapshot = WalletSnapshot(
            address=address,
            sol_balance=balance.result(),
            token_holdings=holdings.result(),
        )
        records = activity.result()
    logger.info(
        'wallet_snapshot_collected',
        wallet=address,
        sol_balance=snapshot.sol_balance,
        token_count=len(snapshot.token_holdings),
        activity_count=len(records),
    )
    return snapshot, records
