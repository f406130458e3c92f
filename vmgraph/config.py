"""Runtime configuration via environment variables (prefix VMGRAPH_)."""
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "vmgraph"
    host: str = "0.0.0.0"
    port: int = 3001
    reload: bool = False
    log_level: str = "INFO"
    history_limit: int = 50
    cors_origins: list[str] = ["*"]
    output_dir: Path = Path("compiled")

    model_config = {"env_prefix": "VMGRAPH_"}


settings = Settings()
