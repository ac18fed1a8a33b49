"""
Source Connection Helper

This module resolves an Airflow connection into plain connection settings once,
confirms the database driver can be loaded, and hands out dedicated DB-API
connections for boundary probes.

Supported sources:
- SQL Server through pyodbc (conn_type 'mssql' or 'odbc')
- PostgreSQL through psycopg2 (conn_type 'postgres')
"""

from typing import Any, Dict, Iterator, Optional
from airflow.hooks.base import BaseHook
import contextlib
import importlib
import logging
import pyodbc

from partition_planner.boundaries import ProbeConnectivityError
from partition_planner.config import get_odbc_driver

logger = logging.getLogger(__name__)

ODBC_CONN_TYPES = ('mssql', 'odbc')
POSTGRES_CONN_TYPES = ('postgres', 'postgresql')


class ConnectionSettings:
    """
    Already-resolved connection settings for a source database.

    Values are plain strings (or None) captured once from the Airflow
    connection, so probing never goes back to the metadata database.
    """

    def __init__(
        self,
        conn_type: str,
        host: str,
        database: Optional[str] = None,
        login: Optional[str] = None,
        password: Optional[str] = None,
        port: Optional[int] = None,
        driver: Optional[str] = None,
    ):
        self.conn_type = (conn_type or '').lower()
        self.host = host
        self.database = database
        self.login = login
        self.password = password
        self.port = port
        self.driver = driver or get_odbc_driver()

    @classmethod
    def from_airflow(cls, conn_id: str) -> "ConnectionSettings":
        """
        Resolve settings from an Airflow connection.

        In Airflow, the database name of MSSQL and Postgres connections is
        stored in the 'schema' field. An 'odbc_driver' key in the connection
        extras overrides the ODBC_DRIVER environment default.

        Args:
            conn_id: Airflow connection ID for the source database

        Returns:
            ConnectionSettings instance
        """
        conn = BaseHook.get_connection(conn_id)
        extras = conn.extra_dejson or {}
        return cls(
            conn_type=conn.conn_type,
            host=conn.host,
            database=conn.schema,
            login=conn.login,
            password=conn.password,
            port=conn.port,
            driver=extras.get('odbc_driver'),
        )

    @property
    def is_odbc(self) -> bool:
        return self.conn_type in ODBC_CONN_TYPES

    @property
    def is_postgres(self) -> bool:
        return self.conn_type in POSTGRES_CONN_TYPES

    def odbc_config(self) -> Dict[str, str]:
        """
        Build ODBC connection parameters.

        Returns:
            Dictionary with ODBC connection parameters
        """
        port = self.port or 1433
        server = f"{self.host},{port}" if port != 1433 else self.host

        config = {
            'DRIVER': f"{{{self.driver}}}",
            'SERVER': server,
            'DATABASE': self.database,
            'TrustServerCertificate': 'yes',
        }

        # Support both SQL Auth and Windows Auth
        if self.login:
            config['UID'] = self.login
            config['PWD'] = self.password or ''
            config['Trusted_Connection'] = 'no'
        else:
            config['Trusted_Connection'] = 'yes'

        return config

    def odbc_connection_string(self) -> str:
        config = self.odbc_config()
        return ';'.join([f"{k}={v}" for k, v in config.items() if v])

    def postgres_config(self) -> Dict[str, Any]:
        return {
            'host': self.host,
            'port': self.port or 5432,
            'database': self.database or self.login,
            'user': self.login,
            'password': self.password,
        }

    def __repr__(self) -> str:
        # Never include the password
        return (
            f"ConnectionSettings(conn_type={self.conn_type!r}, host={self.host!r}, "
            f"port={self.port!r}, database={self.database!r}, login={self.login!r})"
        )


class SourceConnectionFactory:
    """
    Hand out dedicated connections for boundary probes.

    Each call to connection() opens a new connection that belongs to the
    caller for the duration of the with-block and is always closed on exit.
    Nothing is pooled or shared between probes.
    """

    def __init__(self, settings: ConnectionSettings):
        self.settings = settings

    @classmethod
    def from_airflow(cls, conn_id: str) -> "SourceConnectionFactory":
        return cls(ConnectionSettings.from_airflow(conn_id))

    def ensure_driver(self) -> None:
        """
        Confirm the driver for this source can be loaded.

        Raises:
            ProbeConnectivityError: If the driver is missing or the
                connection type is not supported
        """
        if self.settings.is_odbc:
            try:
                available = pyodbc.drivers()
            except pyodbc.Error as e:
                raise ProbeConnectivityError(
                    f"Could not list ODBC drivers: {e}", cause=e
                ) from e
            if self.settings.driver not in available:
                raise ProbeConnectivityError(
                    f"ODBC driver '{self.settings.driver}' is not installed "
                    f"(available: {', '.join(available) or 'none'})"
                )
        elif self.settings.is_postgres:
            try:
                importlib.import_module('psycopg2')
            except ImportError as e:
                raise ProbeConnectivityError(
                    f"PostgreSQL driver psycopg2 could not be loaded: {e}", cause=e
                ) from e
        else:
            raise self._unsupported_type_error()

    def _unsupported_type_error(self) -> ProbeConnectivityError:
        return ProbeConnectivityError(
            f"Unsupported connection type '{self.settings.conn_type}' "
            f"(expected one of: {', '.join(ODBC_CONN_TYPES + POSTGRES_CONN_TYPES)})"
        )

    def _connect(self):
        if self.settings.is_postgres:
            psycopg2 = importlib.import_module('psycopg2')
            return psycopg2.connect(**self.settings.postgres_config())
        if self.settings.is_odbc:
            return pyodbc.connect(self.settings.odbc_connection_string())
        raise self._unsupported_type_error()

    @contextlib.contextmanager
    def connection(self) -> Iterator[Any]:
        """
        Context manager for a dedicated source connection.

        Raises:
            ProbeConnectivityError: If the connection cannot be established
        """
        try:
            conn = self._connect()
        except ProbeConnectivityError:
            raise
        except Exception as e:
            raise ProbeConnectivityError(
                f"Could not connect to {self.settings.conn_type} source "
                f"{self.settings.host}: {e}",
                cause=e,
            ) from e

        logger.debug(f"Opened probe connection to {self.settings.host}")
        try:
            yield conn
        finally:
            try:
                conn.close()
            except Exception:
                logger.exception("Exception occurred while closing probe connection")
