"""
PostgreSQL connection for the postgres storage backend
"""
import os
from typing import Dict

import psycopg2
from dotenv import load_dotenv


# Load environment variables
load_dotenv()


def db_params_from_env() -> Dict:
    """Connection parameters from DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD"""
    return {
        'host': os.getenv('DB_HOST', 'localhost'),
        'port': int(os.getenv('DB_PORT', '5432')),
        'database': os.getenv('DB_NAME', 'ledger_sync'),
        'user': os.getenv('DB_USER', 'ledger_sync'),
        'password': os.getenv('DB_PASSWORD', ''),
    }


def describe_target(params: Dict) -> str:
    """user@host:port/database, without the password"""
    return f"{params['user']}@{params['host']}:{params['port']}/{params['database']}"


def get_db_connection(**overrides):
    """
    Open a connection, environment values overridden by any non-None keyword

    Returns:
        psycopg2 connection object
    """
    params = db_params_from_env()
    params.update({k: v for k, v in overrides.items() if v is not None})
    return psycopg2.connect(**params)
