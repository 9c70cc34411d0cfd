from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    # Logging
    log_level: str = "info"  # info, debug

    # HTTP executor settings
    request_timeout: float = 30.0  # seconds
    follow_redirects: bool = True
    verify_ssl: bool = True
    max_body_size: int = 10 * 1024 * 1024  # 10MB max response body

    # Prepare/clean collaborator
    kubectl_path: str = "kubectl"
    command_timeout: float = 300.0  # seconds per kubectl invocation

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return (value or "info").strip().lower()

    class Config:
        env_file = ".env"
        env_prefix = "APITEST_"


@lru_cache
def get_settings() -> Settings:
    return Settings()
