from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    db_host: str = "localhost"
    db_port: int = 54377
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "chronoprice"
    redis_url: str = "redis://localhost:6379/0"
    cache_enabled: bool = True
    price_cache_ttl: int = 300  # seconds; interpolated results use half
    coingecko_api_key: str = ""
    coingecko_pro: bool = False
    etherscan_api_key: str = ""
    price_fetcher: str = "coingecko"  # coingecko / none
    fetch_timeout_seconds: float = 15.0
    fetch_rate_per_minute: int = 100
    resolve_fetch_attempts: int = 2
    collection_fetch_attempts: int = 3
    retry_backoff_seconds: float = 1.0
    retry_backoff_max_seconds: float = 30.0
    batch_size: int = 10
    batch_delay_seconds: float = 1.0
    worker_concurrency: int = 3
    max_interpolation_gap_seconds: int = 7 * 24 * 3600
    max_collection_days: int = 0  # 0 = no cap
    queue_backend: str = "celery"  # celery / local
    job_max_retries: int = 3
    job_retry_delay_seconds: int = 30
    debug: bool = True

    @property
    def database_url(self) -> str:
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    class Config:
        env_file = ".env"


settings = Settings()
