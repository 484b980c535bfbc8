"""
config.py - Central configuration for the credential engine and API
"""
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AcademiChainSettings(BaseSettings):
    # Identity
    DID_METHOD: str = "ethr"
    KEY_STORE_PATH: Path = Path(".academichain") / "keystore.json"
    WALLET_STORAGE_KEY: str = "student_credentials"

    # Credentials
    CREDENTIAL_CONTEXT: List[str] = ["https://www.w3.org/2018/credentials/v1"]
    ANCHOR_ON_ISSUE: bool = True

    # Mocked collaborators (seconds of simulated latency per call)
    LEDGER_DELAY_SECONDS: float = 0.5
    STORAGE_DELAY_SECONDS: float = 0.5

    # Optional pinning service; the in-memory IPFS mock is used when unset
    PINNING_SERVICE_URL: Optional[str] = None
    PINNING_SERVICE_TOKEN: Optional[str] = None
    PINNING_TIMEOUT_SECONDS: float = 30.0

    # Runtime
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="ACADEMICHAIN_", env_file=".env", extra="ignore"
    )


settings = AcademiChainSettings()
