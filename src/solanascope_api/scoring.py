"""
Threshold heuristics that turn a wallet snapshot and its recent activity into
a risk assessment and an anomaly report.

Both entry points are pure: they read the inputs, never mutate them, and
return fresh models. Thresholds are fixed constants of the public contract.
"""

from collections import Counter
from statistics import fmean, pstdev

from .schemas import ActivityRecord, Anomaly, AnomalyReport, RiskAssessment, RiskLevel, WalletSnapshot

WHALE_THRESHOLD_SOL = 10_000
LOW_BALANCE_SOL = 0.1
DRAINED_BALANCE_SOL = 0.01

LOW_BALANCE_POINTS = 20
NO_ACTIVITY_POINTS = 30
NO_TOKENS_POINTS = 10
HIGH_FREQUENCY_POINTS = 15

HIGH_FREQUENCY_WINDOW = 15
HIGH_FREQUENCY_SPAN_SECONDS = 3600

MEDIUM_RISK_SCORE = 20
HIGH_RISK_SCORE = 50

FAILURE_RATE_THRESHOLD = 0.3
BURST_MIN_RECORDS = 20
BURST_WINDOW = 10
BURST_SPAN_SECONDS = 600
DRAINED_MIN_RECORDS = 10
CIRCULAR_PREFIX_LEN = 10
CIRCULAR_MIN_GROUP_SIZE = 3
CIRCULAR_MIN_GROUPS = 2
TIMING_MIN_RECORDS = 10
TIMING_MIN_STAMPED = 5
TIMING_MAX_VARIATION = 0.15


def is_whale(sol_balance: float) -> bool:
    return sol_balance >= WHALE_THRESHOLD_SOL


def risk_level(score: int) -> RiskLevel:
    if score < MEDIUM_RISK_SCORE:
        return 'low'
    if score < HIGH_RISK_SCORE:
        return 'medium'
    return 'high'


def _block_times(activity: list[ActivityRecord]) -> list[int]:
    return [record.block_time for record in activity if record.block_time is not None]


def _is_high_frequency(activity: list[ActivityRecord]) -> bool:
    if len(activity) < HIGH_FREQUENCY_WINDOW:
        return False
    times = _block_times(activity[:HIGH_FREQUENCY_WINDOW])
    # a span needs two endpoints
    if len(times) < 2:
        return False
    return max(times) - min(times) < HIGH_FREQUENCY_SPAN_SECONDS


def score(wallet: WalletSnapshot, activity: list[ActivityRecord]) -> RiskAssessment:
    """Additive red-flag score; every rule is checked, none short-circuits."""
    points = 0
    factors: list[str] = []

    if wallet.sol_balance < LOW_BALANCE_SOL:
        points += LOW_BALANCE_POINTS
        factors.append('low_sol_balance')
    if len(activity) == 0:
        points += NO_ACTIVITY_POINTS
        factors.append('no_recent_activity')
    if len(wallet.token_holdings) == 0:
        points += NO_TOKENS_POINTS
        factors.append('no_token_holdings')
    if _is_high_frequency(activity):
        points += HIGH_FREQUENCY_POINTS
        factors.append('high_frequency_activity')

    return RiskAssessment(score=points, level=risk_level(points), factors=factors)


def _failure_rate(activity: list[ActivityRecord]) -> Anomaly | None:
    if not activity:
        return None
    failed = sum(1 for record in activity if record.failed)
    rate = failed / len(activity)
    if rate <= FAILURE_RATE_THRESHOLD:
        return None
    return Anomaly(
        type='high_failure_rate',
        severity='medium',
        description=f'{rate * 100:.1f}% of recent transactions failed',
    )


def _burst(activity: list[ActivityRecord]) -> Anomaly | None:
    if len(activity) < BURST_MIN_RECORDS:
        return None
    times = _block_times(activity)
    if len(times) < BURST_WINDOW:
        return None
    span = times[0] - times[BURST_WINDOW - 1]
    if span >= BURST_SPAN_SECONDS:
        return None
    return Anomaly(
        type='burst_activity',
        severity='high',
        description=f'{BURST_WINDOW} transactions within {span} seconds',
    )


def _whale(wallet: WalletSnapshot) -> Anomaly | None:
    if not is_whale(wallet.sol_balance):
        return None
    return Anomaly(
        type='whale_wallet',
        severity='info',
        description=f'Balance of {wallet.sol_balance:,.2f} SOL exceeds whale threshold',
    )


def _drained(wallet: WalletSnapshot, activity: list[ActivityRecord]) -> Anomaly | None:
    if wallet.sol_balance >= DRAINED_BALANCE_SOL or len(activity) <= DRAINED_MIN_RECORDS:
        return None
    return Anomaly(
        type='drained_wallet',
        severity='high',
        description='Near-zero balance despite recent activity',
    )


def _circular_trading(activity: list[ActivityRecord]) -> Anomaly | None:
    # Groups on signature prefix, not counterparty address.
    groups = Counter(record.signature[:CIRCULAR_PREFIX_LEN] for record in activity)
    repeated = sum(1 for size in groups.values() if size >= CIRCULAR_MIN_GROUP_SIZE)
    if repeated < CIRCULAR_MIN_GROUPS:
        return None
    return Anomaly(
        type='potential_circular_trading',
        severity='medium',
        description=f'{repeated} repeated transaction patterns detected',
    )


def _automated_timing(activity: list[ActivityRecord]) -> Anomaly | None:
    if len(activity) < TIMING_MIN_RECORDS:
        return None
    times = sorted(_block_times(activity), reverse=True)
    if len(times) < TIMING_MIN_STAMPED:
        return None
    intervals = [newer - older for newer, older in zip(times, times[1:])]
    mean = fmean(intervals)
    if mean <= 0:
        return None
    variation = pstdev(intervals) / mean
    if variation >= TIMING_MAX_VARIATION:
        return None
    return Anomaly(
        type='automated_timing_pattern',
        severity='medium',
        description=f'Highly regular transaction intervals (cv={variation:.3f}, mean={mean:.1f}s)',
    )


def overall_risk(anomalies: list[Anomaly]) -> RiskLevel:
    severities = {anomaly.severity for anomaly in anomalies}
    if 'high' in severities:
        return 'high'
    if 'medium' in severities:
        return 'medium'
    return 'low'


def detect_anomalies(wallet: WalletSnapshot, activity: list[ActivityRecord]) -> AnomalyReport:
    """Run every anomaly rule; callers pass at most 50 records, most recent first."""
    candidates = [
        _failure_rate(activity),
        _burst(activity),
        _whale(wallet),
        _drained(wallet, activity),
        _circular_trading(activity),
        _automated_timing(activity),
    ]
    anomalies = [anomaly for anomaly in candidates if anomaly is not None]
    return AnomalyReport(anomalies=anomalies, overall_risk=overall_risk(anomalies))
