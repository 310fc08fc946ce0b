from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, Field, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SQL_AGENT_",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "SQL Agent"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None
    LOG_LEVEL: str = "INFO"

    HOST: str = "localhost"
    PORT: int = 5000

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    # Pooled handles (one per driver + connection parameters)
    POOL_MAX_IDLE_CONNS: int = Field(default=10, ge=1)  # 0 would mean unbounded in QueuePool
    POOL_MAX_OVERFLOW: int = 10
    POOL_CONN_MAX_LIFETIME: float = 0  # seconds; 0 = connections never recycled
    CONNECT_TIMEOUT: int = 10  # seconds; passed to drivers that support it

    # Streaming output
    LDJSON_FLUSH_EVERY: int = 1000
    STREAM_CHUNK_SIZE: int = 64 * 1024
    STREAM_QUEUE_SIZE: int = 16
    STREAM_MAX_WORKERS: int = Field(default=64, ge=1)  # encoder threads, separate from to_thread

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]


settings = Settings()  # type: ignore
