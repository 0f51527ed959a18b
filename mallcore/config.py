"""Application configuration sections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass
class ServerConfig:
    """HTTP server settings."""

    port: str = ""
    mode: str = ""
    read_timeout: timedelta = timedelta()
    write_timeout: timedelta = timedelta()
    max_header_bytes: int = 0


@dataclass
class DatabaseConfig:
    """PostgreSQL connection settings."""

    driver: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    dbname: str = ""
    sslmode: str = ""
    max_open_conns: int = 0
    max_idle_conns: int = 0
    conn_max_lifetime: timedelta = timedelta()

    def dsn(self) -> str:
        """Return the PostgreSQL keyword/value connection string."""
        return (
            f"host={self.host} port={self.port} user={self.user} "
            f"password={self.password} dbname={self.dbname} sslmode={self.sslmode}"
        )


@dataclass
class RedisConfig:
    """Redis connection settings."""

    host: str = ""
    port: int = 0
    password: str = ""
    db: int = 0
    pool_size: int = 0
    min_idle_conns: int = 0
    max_retries: int = 0
    dial_timeout: timedelta = timedelta()
    read_timeout: timedelta = timedelta()
    write_timeout: timedelta = timedelta()


@dataclass
class CacheConfig:
    """Cache lifetimes."""

    product_ttl: timedelta = timedelta()
    product_list_ttl: timedelta = timedelta()
    stock_ttl: timedelta = timedelta()
    user_session_ttl: timedelta = timedelta()
    hot_product_ttl: timedelta = timedelta()


@dataclass
class JWTConfig:
    """Token signing settings."""

    secret: str = ""
    access_token_duration: timedelta = timedelta()
    refresh_token_duration: timedelta = timedelta()


@dataclass
class EmailConfig:
    """Outgoing mail settings."""

    sender_name: str = ""
    sender_email: str = ""
    sender_password: str = ""


@dataclass
class PaginationConfig:
    """Page size limits."""

    default_page_size: int = 0
    max_page_size: int = 0


@dataclass
class InventoryConfig:
    """Stock reservation settings."""

    reservation_ttl: timedelta = timedelta()
    cleanup_interval: timedelta = timedelta()


@dataclass
class OrderConfig:
    """Order lifecycle settings."""

    payment_timeout: timedelta = timedelta()
    auto_cancel_interval: timedelta = timedelta()


@dataclass
class Config:
    """All configuration for the application."""

    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    order: OrderConfig = field(default_factory=OrderConfig)