from __future__ import annotations
import os
from typing import Any, Dict

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

PERMISSION_SOURCES = ('local', 'remote')


def load_settings() -> Dict[str, Any]:
    """Environment-driven defaults; ``create_app(config)`` overrides win."""
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        # where resolution reads role assignments: own DB or external RBAC API
        'PERMISSION_SOURCE': os.getenv('PERMISSION_SOURCE', 'local'),
        'RBAC_API_URL': os.getenv('RBAC_API_URL', 'http://localhost:5000/rbac'),
        'RBAC_API_TOKEN': os.getenv('RBAC_API_TOKEN'),
        'RBAC_API_TIMEOUT': float(os.getenv('RBAC_API_TIMEOUT', '10')),
        'PERMISSION_CACHE_TTL': float(os.getenv('PERMISSION_CACHE_TTL', '300')),
        'ASSIGN_RETRY_ATTEMPTS': int(os.getenv('ASSIGN_RETRY_ATTEMPTS', '3')),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
    }


def normalize_pagination(limit_raw, offset_raw):
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
