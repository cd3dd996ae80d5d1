"""F3 Nation API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

F3NATION_BASE_URL = "https://api.f3nation.com"
F3NATION_DEFAULT_CLIENT = "f3nearme"
F3NATION_TIMEOUT_SECONDS = 60.0
RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_DEFAULT_WAIT_SECONDS = 10.0


@dataclass(frozen=True)
class F3NationConfig:
    """Holds F3 Nation API configuration values."""

    api_key: str
    client_name: str
    resilience: ResilienceConfig
    rate_limit_max_retries: int = RATE_LIMIT_MAX_RETRIES
    rate_limit_default_wait: float = RATE_LIMIT_DEFAULT_WAIT_SECONDS

    @property
    def base_url(self) -> str:
        return self.resilience.base_url or F3NATION_BASE_URL

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "client": self.client_name}


def build_f3nation_resilience(base_url: str = F3NATION_BASE_URL) -> ResilienceConfig:
    return ResilienceConfig(
        name="f3nation",
        base_url=base_url,
        timeout_seconds=F3NATION_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
    )


def get_f3nation_config(*, resilience: ResilienceConfig | None = None) -> F3NationConfig:
    values = require_env_vars(("F3_API_KEY",))
    base_url = optional_env_var("F3_API_BASE_URL") or F3NATION_BASE_URL
    return F3NationConfig(
        api_key=values["F3_API_KEY"],
        client_name=optional_env_var("F3_CLIENT") or F3NATION_DEFAULT_CLIENT,
        resilience=resilience or build_f3nation_resilience(base_url),
    )
