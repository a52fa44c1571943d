# clinic/config.py
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from .crypto import FieldCipher, PBKDF2_ITERATIONS


@dataclass(frozen=True)
class Settings:
    encryption_secret: str
    pbkdf2_iterations: int = PBKDF2_ITERATIONS
    log_level: str = "INFO"

    # JWT params
    jwt_alg: str = "HS256"
    jwt_signing_key: str = ""
    jwt_audience: str = "psyclinic"
    issuer: str = ""

    # libpq params
    pg_host: str = "postgres"
    pg_database: str = "postgres"
    pg_user: str = "psyclinic"
    pg_sslmode: str = "prefer"
    db_pool_max: int = 10


def parse_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment. ENCRYPTION_SECRET is mandatory."""
    env = os.environ if environ is None else environ

    secret = env.get("ENCRYPTION_SECRET")
    if not secret:
        raise RuntimeError("ENCRYPTION_SECRET is not set (high-entropy string required)")

    return Settings(
        encryption_secret=secret,
        pbkdf2_iterations=int(env.get("ENCRYPTION_PBKDF2_ITERATIONS", str(PBKDF2_ITERATIONS))),
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper(),
        jwt_alg=env.get("JWT_ALG", "HS256"),
        jwt_signing_key=env.get("JWT_SIGNING_KEY", ""),
        jwt_audience=env.get("JWT_AUDIENCE", "psyclinic"),
        issuer=env.get("ISSUER", ""),
        pg_host=env.get("PGHOST", "postgres"),
        pg_database=env.get("PGDATABASE", "postgres"),
        pg_user=env.get("PGUSER", "psyclinic"),
        pg_sslmode=env.get("PGSSLMODE", "prefer"),
        db_pool_max=int(env.get("DB_POOL_MAX", "10")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_cipher() -> FieldCipher:
    """Process-wide cipher; the secret is read once and never reloaded."""
    settings = get_settings()
    return FieldCipher(settings.encryption_secret, iterations=settings.pbkdf2_iterations)
