"""
Configuration from environment variables (.env supported)
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from ledger_sync.core.llm_categorizer import DEFAULT_MODEL
from ledger_sync.core.models import AUTO_APPROVE_THRESHOLD


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    qb_access_token: Optional[str] = None
    qb_realm_id: Optional[str] = None
    qb_environment: str = 'production'
    plaid_client_id: Optional[str] = None
    plaid_secret: Optional[str] = None
    plaid_env: str = 'sandbox'
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_MODEL
    storage_backend: str = 'file'
    storage_path: str = './ledger_sync_store.json'
    auto_approve_threshold: float = AUTO_APPROVE_THRESHOLD
    category_cache_ttl: int = 3600
    enable_llm: bool = True

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'Settings':
        """
        Read settings from the environment

        Args:
            dotenv: Load a .env file first
        """
        if dotenv:
            load_dotenv()

        return cls(
            qb_access_token=os.getenv('QB_ACCESS_TOKEN'),
            qb_realm_id=os.getenv('QB_REALM_ID'),
            qb_environment=os.getenv('QB_ENVIRONMENT', 'production'),
            plaid_client_id=os.getenv('PLAID_CLIENT_ID'),
            plaid_secret=os.getenv('PLAID_SECRET'),
            plaid_env=os.getenv('PLAID_ENV', 'sandbox'),
            anthropic_api_key=os.getenv('ANTHROPIC_API_KEY'),
            anthropic_model=os.getenv('ANTHROPIC_MODEL', DEFAULT_MODEL),
            storage_backend=os.getenv('STORAGE_BACKEND', 'file'),
            storage_path=os.getenv('STORAGE_PATH', './ledger_sync_store.json'),
            auto_approve_threshold=float(os.getenv('AUTO_APPROVE_THRESHOLD', str(AUTO_APPROVE_THRESHOLD))),
            category_cache_ttl=int(os.getenv('CATEGORY_CACHE_TTL', '3600')),
            enable_llm=_env_bool('ENABLE_LLM', True),
        )
