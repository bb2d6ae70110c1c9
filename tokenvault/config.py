"""Application configuration. All env vars defined here with defaults."""

from pydantic_settings import BaseSettings


class TokenVaultConfig(BaseSettings):
    # ── App ──
    app_name: str = "tokenvault"
    debug: bool = False
    log_level: str = "INFO"

    # ── Database ──
    database_url: str = "sqlite+aiosqlite:///./tokenvault.db"   # postgresql+asyncpg://... in production

    # ── Encryption ──
    token_encryption_key: str = ""                 # master secret; empty means encode/decode refuse
    kdf_iterations: int = 100_000                  # PBKDF2-HMAC-SHA256 rounds for v2 envelopes

    # ── Auth ──
    jwt_secret: str = "change-me-in-production-tokenvault-insecure-default-key"
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60

    # ── Migration ──
    migration_batch_size: int = 100                # rows fetched per scan page

    # ── Server ──
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_prefix": "TOKENVAULT_", "env_file": ".env", "extra": "ignore"}


config = TokenVaultConfig()
