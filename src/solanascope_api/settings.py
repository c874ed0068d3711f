from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    solana_rpc_url: str = Field(default='https://api.mainnet-beta.solana.com', alias='SOLANA_RPC_URL')
    timeout_seconds: int = Field(default=15, alias='SOLANASCOPE_TIMEOUT_SECONDS')
    jupiter_quote_url: str = Field(default='https://quote-api.jup.ag/v6/quote', alias='JUPITER_QUOTE_URL')
    jupiter_token_url: str = Field(default='https://tokens.jup.ag/token', alias='JUPITER_TOKEN_URL')
    pyth_hermes_url: str = Field(default='https://hermes.pyth.network', alias='PYTH_HERMES_URL')
    log_level: str = Field(default='INFO', alias='LOG_LEVEL')
    log_format: str = Field(default='json', alias='LOG_FORMAT')
    dd_api_key: str | None = Field(default=None, alias='DD_API_KEY')
    dd_service: str = Field(default='solanascope-api', alias='DD_SERVICE')
    dd_env: str = Field(default='dev', alias='DD_ENV')
    dd_version: str = Field(default='0.1.0', alias='DD_VERSION')
    dd_site: str = Field(default='datadoghq.com', alias='DD_SITE')
    dd_send_logs: bool = Field(default=True, alias='DD_SEND_LOGS')
    dd_trace_enabled: bool = Field(default=False, alias='DD_TRACE_ENABLED')
    dd_trace_agent_url: str | None = Field(default=None, alias='DD_TRACE_AGENT_URL')


settings = Settings()
