from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, SecretStr


class ProxySettings(BaseModel):
    enabled: bool = False
    url: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    model_config = {"extra": "forbid"}


class HttpSettings(BaseModel):
    user_agent: str = "exchangeapi"
    timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = {"extra": "forbid"}


class RateLimitSettings(BaseModel):
    max_requests: int = Field(default=5, gt=0)
    window_seconds: float = Field(default=15.0, gt=0)

    model_config = {"extra": "forbid"}


class ExchangeCredentials(BaseModel):
    public_key: SecretStr
    private_key: SecretStr
    passphrase: SecretStr | None = None

    model_config = {"extra": "forbid"}


class ExchangeSettings(BaseModel):
    enabled: bool = True
    base_url: str | None = None
    credentials: ExchangeCredentials | None = None
    rate_limit: RateLimitSettings | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class Settings(BaseModel):
    env: str = "dev"
    http: HttpSettings = Field(default_factory=HttpSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    exchanges: dict[str, ExchangeSettings] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    def exchange(self, name: str) -> ExchangeSettings | None:
        """Settings for an exchange, matching the name case-insensitively."""
        if name in self.exchanges:
            return self.exchanges[name]
        lowered = name.lower()
        for key, value in self.exchanges.items():
            if key.lower() == lowered:
                return value
        return None

    def redacted(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        for exch in data.get("exchanges", {}).values():
            creds = exch.get("credentials")
            if isinstance(creds, dict):
                if "public_key" in creds:
                    creds["public_key"] = "***"
                if "private_key" in creds:
                    creds["private_key"] = "***"
                if "passphrase" in creds and creds["passphrase"] is not None:
                    creds["passphrase"] = "***"
        proxy = data.get("proxy")
        if isinstance(proxy, dict) and proxy.get("password") is not None:
            proxy["password"] = "***"
        return data
