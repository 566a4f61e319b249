"""
config.py - Central configuration for the DID Registry
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DID_REGISTRY_", env_file=".env")

    # Contract
    CONTRACT_NAME: str = "did-registry"

    # Bounded-length text arguments
    MAX_DID_LENGTH: int = 100
    MAX_CLAIM_TYPE_LENGTH: int = 50
    MAX_CLAIM_DATA_LENGTH: int = 256

    # Devnet: deployer + wallet_1..wallet_N
    DEVNET_WALLETS: int = 9

    # Chain
    MAX_ADVANCE_BLOCKS: int = 10_000  # per advance() call
    RECENT_BLOCKS: int = 100          # mined blocks kept in memory

    # Persistence (JSON snapshot, loaded on API startup, saved after every block)
    STATE_FILE: Optional[Path] = None

    # API
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000


settings = RegistrySettings()
