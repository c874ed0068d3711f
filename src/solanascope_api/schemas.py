from typing import Any, Literal

from pydantic import BaseModel, Field

RiskLevel = Literal['low', 'medium', 'high']
Severity = Literal['info', 'low', 'medium', 'high']


class TokenHolding(BaseModel):
    mint: str
    ui_balance: float
    decimals: int | None = None
    account: str | None = None


class WalletSnapshot(BaseModel):
    address: str
    sol_balance: float
    token_holdings: list[TokenHolding] = Field(default_factory=list)


class ActivityRecord(BaseModel):
    signature: str
    block_time: int | None = None
    failed: bool = False
    slot: int | None = None
    memo: str | None = None


class RiskAssessment(BaseModel):
    score: int
    level: RiskLevel
    factors: list[str]


class Anomaly(BaseModel):
    type: str
    severity: Severity
    description: str


class AnomalyReport(BaseModel):
    anomalies: list[Anomaly]
    overall_risk: RiskLevel


class TraceStep(BaseModel):
    step: str
    duration_ms: int
    ok: bool
    detail: str | None = None


class AnalyzeWalletRequest(BaseModel):
    address: str = Field(..., description='Target Solana wallet address')


class WalletSummary(BaseModel):
    sol_balance: float
    token_count: int
    is_whale: bool
    recent_transactions: int
    last_active: str | None = None


class WalletAnalysisResponse(BaseModel):
    address: str
    summary: WalletSummary
    tokens: list[TokenHolding]
    risk: RiskAssessment
    anomalies: AnomalyReport
    trace: list[TraceStep] = Field(default_factory=list)
    timestamp: str


class WalletRiskResponse(BaseModel):
    address: str
    risk: RiskAssessment
    trace: list[TraceStep] = Field(default_factory=list)
    timestamp: str


class WalletAnomalyResponse(BaseModel):
    address: str
    report: AnomalyReport
    trace: list[TraceStep] = Field(default_factory=list)
    timestamp: str


class WalletActivityResponse(BaseModel):
    address: str
    activity: list[ActivityRecord]
    count: int
    timestamp: str


class WalletBalanceResponse(BaseModel):
    address: str
    sol_balance: float
    sol_balance_lamports: int
    token_account_count: int
    is_whale: bool
    whale_threshold: float
    timestamp: str


class WalletTokensResponse(BaseModel):
    address: str
    tokens: list[TokenHolding]
    count: int
    timestamp: str


class ProgramStatus(BaseModel):
    protocol: str
    name: str
    status: Literal['active', 'unknown']
    program_exists: bool
    executable: bool
    owner: str | None = None
    checked_at: str


class NetworkStats(BaseModel):
    slot: int
    block_height: int
    epoch: int
    slot_index: int
    slots_in_epoch: int
    epoch_progress: str
    total_supply: float
    circulating_supply: float
    timestamp: str


class TransactionDetails(BaseModel):
    signature: str
    slot: int | None = None
    block_time: int | None = None
    success: bool
    fee: int | None = None
    compute_units_consumed: int | None = None
    accounts: list[str]
    timestamp: str


class PriceQuote(BaseModel):
    symbol: str
    feed_id: str
    price: float
    confidence: float
    publish_time: int | None = None
    timestamp: str


class SwapQuote(BaseModel):
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float
    slippage_bps: int
    route: list[str]
    timestamp: str


class TokenMetadata(BaseModel):
    mint: str
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    logo_uri: str | None = None
    tags: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)
