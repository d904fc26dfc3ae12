import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
from urllib.parse import quote_plus

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / ".env")

_RESERVED_PASSWORD_CHARS = ["@", "#", "$", "%", "&", "+", "="]


def encode_mongo_url(mongo_url: str) -> str:
    """URL-encode the password part of a Mongo URL if it contains reserved characters."""
    if "@" not in mongo_url or "://" not in mongo_url:
        return mongo_url
    protocol_end = mongo_url.find("://") + 3
    at_pos = mongo_url.rfind("@")
    if at_pos <= protocol_end:
        return mongo_url
    user_pass = mongo_url[protocol_end:at_pos]
    if ":" not in user_pass:
        return mongo_url
    username, password = user_pass.split(":", 1)
    if any(c in password for c in _RESERVED_PASSWORD_CHARS):
        password = quote_plus(password)
    return mongo_url[:protocol_end] + f"{username}:{password}" + mongo_url[at_pos:]


def _split_origins(raw: str) -> List[str]:
    raw = (raw or "").strip()
    if not raw:
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    mongo_url: str = field(
        default_factory=lambda: encode_mongo_url(os.environ.get("MONGO_URL", "mongodb://localhost:27017"))
    )
    db_name: str = field(default_factory=lambda: os.environ.get("DB_NAME", "campus_db"))
    jwt_secret: str = field(default_factory=lambda: os.environ.get("JWT_SECRET", ""))
    jwt_expire_minutes: int = field(
        default_factory=lambda: int(os.environ.get("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))
    )
    cors_origins: List[str] = field(default_factory=lambda: _split_origins(os.environ.get("CORS_ORIGINS", "*")))
    upload_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("UPLOAD_DIR", str(ROOT_DIR / "uploads")))
    )
    max_upload_bytes: int = field(
        default_factory=lambda: int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    )
    seed_admin_email: str = field(default_factory=lambda: os.environ.get("SEED_ADMIN_EMAIL", ""))
    seed_admin_password: str = field(default_factory=lambda: os.environ.get("SEED_ADMIN_PASSWORD", ""))
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))


_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
