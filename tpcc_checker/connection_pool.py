"""MySQL connection pool manager shared by all checker threads"""

import hashlib
import threading
from logging import getLogger

from mysql.connector import Error as MySQLError
from mysql.connector.pooling import MySQLConnectionPool

from .config import MAX_POOL_SIZE, MysqlSettings

logger = getLogger(__name__)


class ConnectionPoolManager:
    """Singleton holding one pool per host, port, user and pool name"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._pools = {}
            self._initialized = True

    @staticmethod
    def short_pool_name(pool_key: str, user: str) -> str:
        """
        MySQL connector limits pool names to ~64 characters, so pools are
        registered as pool_{user}_{hash8} while the full key is kept for lookups.
        """
        hash_digest = hashlib.sha256(pool_key.encode("utf-8")).hexdigest()[:8]
        return f"pool_{user[:16]}_{hash_digest}"

    def get_or_create_pool(
        self,
        mysql_settings: MysqlSettings,
        database: str = None,
    ) -> MySQLConnectionPool:
        pool_key = (
            f"{mysql_settings.host}:{mysql_settings.port}:{mysql_settings.user}:"
            f"{database or ''}:{mysql_settings.pool_name}"
        )

        if pool_key not in self._pools:
            with self._lock:
                if pool_key not in self._pools:
                    config = mysql_settings.get_connection_config(
                        database=database, autocommit=True,
                    )
                    pool_size = min(
                        mysql_settings.pool_size + mysql_settings.max_overflow, MAX_POOL_SIZE,
                    )
                    pool_name = self.short_pool_name(pool_key, mysql_settings.user)
                    try:
                        self._pools[pool_key] = MySQLConnectionPool(
                            pool_name=pool_name,
                            pool_size=pool_size,
                            pool_reset_session=True,
                            **config,
                        )
                    except MySQLError as e:
                        logger.error(f"Failed to create connection pool '{pool_key}': {e}")
                        raise
                    logger.info(
                        f"Created MySQL connection pool '{pool_name}' "
                        f"(key: '{pool_key}') with {pool_size} connections"
                    )

        return self._pools[pool_key]


class PooledConnection:
    """Context manager for pooled MySQL connections, always released on exit"""

    def __init__(self, pool: MySQLConnectionPool):
        self.pool = pool
        self.connection = None
        self.cursor = None

    def __enter__(self):
        try:
            self.connection = self.pool.get_connection()
            self.cursor = self.connection.cursor()
        except MySQLError as e:
            logger.error(f"Failed to get connection from pool: {e}")
            self._release()
            raise
        return self.connection, self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._release()

    def _release(self):
        if self.cursor is not None:
            self.cursor.close()
            self.cursor = None
        if self.connection is not None:
            # returns the connection to the pool
            self.connection.close()
            self.connection = None


def get_pool_manager() -> ConnectionPoolManager:
    return ConnectionPoolManager()
