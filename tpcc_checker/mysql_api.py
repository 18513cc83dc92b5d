from contextlib import contextmanager
from logging import getLogger

from mysql.connector import Error as MySQLError

from .config import MysqlSettings
from .connection_pool import PooledConnection, get_pool_manager
from .errors import ExecutionError

logger = getLogger(__name__)


class MySQLApi:
    """Pooled MySQL implementation of ``checks.QueryExecutor``"""


    def __init__(self, database: str, mysql_settings: MysqlSettings):
        self.database = database
        self.mysql_settings = mysql_settings
        self.connection_pool = get_pool_manager().get_or_create_pool(
            mysql_settings=mysql_settings, database=database,
        )
        logger.info(
            f"MySQLApi initialized with database '{database}' using connection pool '{mysql_settings.pool_name}'"
        )

    @contextmanager
    def get_connection(self):
        with PooledConnection(self.connection_pool) as (connection, cursor):
            yield connection, cursor

    def query(self, sql, args=()):
        try:
            with self.get_connection() as (connection, cursor):
                cursor.execute(sql, tuple(args))
                return cursor.fetchall()
        except MySQLError as e:
            logger.error(f"Query execution failed: {' '.join(sql.split())} params={tuple(args)}: {e}")
            raise ExecutionError(sql, e) from e
