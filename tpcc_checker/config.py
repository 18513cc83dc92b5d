"""
Consistency checker configuration

Classes:
    MysqlSettings: MySQL connection and connection pool configuration
    Settings: Main configuration loaded from a YAML file

Values from the YAML file can be overridden with environment variables
(MYSQL_HOST, MYSQL_PORT, MYSQL_USER, MYSQL_PASSWORD, MYSQL_CHARSET,
TPCC_DATABASE, TPCC_THREADS, TPCC_WAREHOUSES).
"""

import os
from dataclasses import dataclass
from logging import getLogger

import yaml

logger = getLogger(__name__)

# mysql-connector refuses pools larger than this
MAX_POOL_SIZE = 32


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


@dataclass
class MysqlSettings:
    """MySQL connection configuration with connection pool support.

    Attributes:
        host: MySQL server hostname or IP address
        port: MySQL server port (default: 3306)
        user: MySQL username for authentication
        password: MySQL password for authentication
        pool_size: Base number of connections in pool (default: 5)
        max_overflow: Maximum additional connections beyond pool_size (default: 10)
        pool_name: Identifier for connection pool (default: "default")
        charset: Character set for connection (optional)
        collation: Collation for connection (optional)
    """
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    pool_size: int = 5
    max_overflow: int = 10
    pool_name: str = "default"
    charset: str = None
    collation: str = None

    def validate(self):
        if not isinstance(self.host, str):
            raise ValueError(f"mysql host should be string and not {stype(self.host)}")

        if not isinstance(self.port, int):
            raise ValueError(f"mysql port should be int and not {stype(self.port)}")

        if not isinstance(self.user, str):
            raise ValueError(f"mysql user should be string and not {stype(self.user)}")

        if not isinstance(self.password, str):
            raise ValueError(
                f"mysql password should be string and not {stype(self.password)}"
            )

        if not isinstance(self.pool_size, int) or self.pool_size < 1:
            raise ValueError(
                f"mysql pool_size should be positive integer and not {self.pool_size!r}"
            )

        if not isinstance(self.max_overflow, int) or self.max_overflow < 0:
            raise ValueError(
                f"mysql max_overflow should be non-negative integer and not {self.max_overflow!r}"
            )

        if not isinstance(self.pool_name, str):
            raise ValueError(
                f"mysql pool_name should be string and not {stype(self.pool_name)}"
            )

        if self.charset is not None and not isinstance(self.charset, str):
            raise ValueError(
                f"mysql charset should be string or None and not {stype(self.charset)}"
            )

        if self.collation is not None and not isinstance(self.collation, str):
            raise ValueError(
                f"mysql collation should be string or None and not {stype(self.collation)}"
            )

    def get_connection_config(self, database=None, autocommit=True):
        """Build standardized MySQL connection configuration"""
        config = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "autocommit": autocommit,
        }

        if database is not None:
            config["database"] = database

        if self.charset is not None:
            config["charset"] = self.charset

        if self.collation is not None:
            config["collation"] = self.collation

        return config

    def apply_env_overrides(self):
        env_map = {
            "MYSQL_HOST": ("host", str),
            "MYSQL_PORT": ("port", int),
            "MYSQL_USER": ("user", str),
            "MYSQL_PASSWORD": ("password", str),
            "MYSQL_CHARSET": ("charset", str),
        }
        for env_name, (attr, cast) in env_map.items():
            value = os.environ.get(env_name)
            if value is not None:
                setattr(self, attr, cast(value))


class Settings:
    DEFAULT_LOG_LEVEL = "info"
    DEFAULT_THREADS = 1

    def __init__(self):
        self.mysql = MysqlSettings()
        self.database = ""
        self.threads = Settings.DEFAULT_THREADS
        self.warehouses = 0
        self.log_level = Settings.DEFAULT_LOG_LEVEL

    def load(self, settings_file, overrides=None):
        """Load the YAML file, then apply environment variables and
        ``overrides`` (command line values, None entries ignored) in that
        order, and validate the result."""
        with open(settings_file, "r") as f:
            data = yaml.safe_load(f.read()) or {}

        self.mysql = MysqlSettings(**data.pop("mysql", {}))
        self.database = data.pop("database", "")
        self.threads = data.pop("threads", Settings.DEFAULT_THREADS)
        self.warehouses = data.pop("warehouses", 0)
        self.log_level = data.pop("log_level", Settings.DEFAULT_LOG_LEVEL)

        if data:
            raise ValueError(f"Unsupported config options: {list(data.keys())}")

        self.apply_env_overrides()
        for name, value in (overrides or {}).items():
            if name not in ("database", "threads", "warehouses", "log_level"):
                raise ValueError(f"Unsupported override: {name}")
            if value is not None:
                setattr(self, name, value)
        self.validate()

    def apply_env_overrides(self):
        self.mysql.apply_env_overrides()
        if "TPCC_DATABASE" in os.environ:
            self.database = os.environ["TPCC_DATABASE"]
        if "TPCC_THREADS" in os.environ:
            self.threads = int(os.environ["TPCC_THREADS"])
        if "TPCC_WAREHOUSES" in os.environ:
            self.warehouses = int(os.environ["TPCC_WAREHOUSES"])

    def validate_log_level(self):
        if self.log_level not in ["critical", "error", "warning", "info", "debug"]:
            raise ValueError(f"wrong log level {self.log_level}")

    def validate(self):
        self.mysql.validate()
        self.validate_log_level()
        if not isinstance(self.database, str) or not self.database:
            raise ValueError(f"database should be a non-empty string, not {self.database!r}")
        if not isinstance(self.threads, int) or self.threads < 1:
            raise ValueError(f"threads should be a positive integer, not {self.threads!r}")
        if not isinstance(self.warehouses, int) or self.warehouses < 1:
            raise ValueError(f"warehouses should be a positive integer, not {self.warehouses!r}")

        pool_capacity = min(self.mysql.pool_size + self.mysql.max_overflow, MAX_POOL_SIZE)
        if pool_capacity < self.threads:
            logger.warning(
                f"connection pool holds {pool_capacity} connections but {self.threads} threads are configured, "
                f"workers will block waiting for connections"
            )
