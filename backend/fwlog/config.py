from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import URL


@dataclass
class AppConfig:
    syslog_host: str = "0.0.0.0"
    syslog_port: int = 514
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    serve_api: bool = True
    database_url: Optional[str] = None
    sql_server: Optional[str] = None
    sql_port: Optional[int] = None
    sql_driver: str = "postgresql+psycopg"
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    timezone: Optional[str] = None
    queue_size: int = 1000
    backlog_max: int = 10000
    retry_attempts: int = 3
    retry_base_sleep: float = 0.05
    stats_interval: int = 300
    log_level: str = "info"

    def resolved_database_url(self) -> str:
        """Explicit --database-url wins; otherwise assemble one from the server/credential parts."""
        if self.database_url:
            return self.database_url
        if not self.sql_server:
            return "sqlite:///./fwlog.db"
        url = URL.create(
            drivername=self.sql_driver,
            username=self.username or None,
            password=self.password or None,
            host=self.sql_server,
            port=self.sql_port,
            database=self.database or None,
        )
        return url.render_as_string(hide_password=False)


def parse_args(argv: Optional[list[str]] = None) -> AppConfig:
    """Parse CLI arguments into AppConfig.

    Exposed via `python -m fwlog` and `fwlog-ingest`.
    """
    import argparse

    parser = argparse.ArgumentParser(description="Firewall kernel log syslog ingest")
    parser.add_argument("--syslog-host", default="0.0.0.0")
    parser.add_argument("--syslog-port", type=int, default=514)
    parser.add_argument("--web-host", default="0.0.0.0")
    parser.add_argument("--web-port", type=int, default=8080)
    parser.add_argument("--no-api", action="store_true", help="Do not serve the HTTP stats API")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL; overrides the --sql-* options",
    )
    parser.add_argument("--sql-server", default=None, help="Address of the database server")
    parser.add_argument("--sql-port", type=int, default=None, help="Port of the database server")
    parser.add_argument(
        "--sql-driver",
        default="postgresql+psycopg",
        help="SQLAlchemy dialect+driver used with --sql-server",
    )
    parser.add_argument("--database", default=None, help="Database where logs are written to")
    parser.add_argument("--username", default=None)
    parser.add_argument("--password", default=None)
    parser.add_argument(
        "--timezone",
        default=None,
        help="IANA zone used to label syslog timestamps (default: process local zone)",
    )
    parser.add_argument("--queue-size", type=int, default=1000)
    parser.add_argument("--backlog-max", type=int, default=10000)
    parser.add_argument("--retry-attempts", type=int, default=3)
    parser.add_argument(
        "--stats-interval",
        type=int,
        default=300,
        help="Seconds between ingest stats log lines (0 disables)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
    )

    args = parser.parse_args(argv)

    return AppConfig(
        syslog_host=args.syslog_host,
        syslog_port=args.syslog_port,
        web_host=args.web_host,
        web_port=args.web_port,
        serve_api=not args.no_api,
        database_url=args.database_url,
        sql_server=args.sql_server,
        sql_port=args.sql_port,
        sql_driver=args.sql_driver,
        database=args.database,
        username=args.username,
        password=args.password,
        timezone=args.timezone,
        queue_size=args.queue_size,
        backlog_max=args.backlog_max,
        retry_attempts=args.retry_attempts,
        stats_interval=args.stats_interval,
        log_level=args.log_level,
    )
