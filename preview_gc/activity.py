"""Database activity probe for CoreDev previews.

Each CoreDev preview runs its own MySQL instance. A preview counts as used
when any of the tables below received a row within the lookback window.
"""

from __future__ import annotations

import structlog
from sqlalchemy import URL, text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from preview_gc.config import ActivityConfig

logger = structlog.get_logger()

# signal name -> existence query over the lookback window
ACTIVITY_QUERIES: dict[str, str] = {
    "workspace_instance_created": (
        "SELECT creationTime FROM d_b_workspace_instance "
        "WHERE creationTime > DATE_SUB(NOW(), INTERVAL :hours HOUR) LIMIT 1"
    ),
    "user_created": (
        "SELECT creationDate FROM d_b_user "
        "WHERE creationDate > DATE_SUB(NOW(), INTERVAL :hours HOUR) LIMIT 1"
    ),
    "user_modified": (
        "SELECT _lastModified FROM d_b_user "
        "WHERE _lastModified > DATE_SUB(NOW(), INTERVAL :hours HOUR) LIMIT 1"
    ),
    "heartbeat": (
        "SELECT lastSeen FROM d_b_workspace_instance_user "
        "WHERE lastSeen > DATE_SUB(NOW(), INTERVAL :hours HOUR) LIMIT 1"
    ),
}


class DatabaseActivityProbe:
    """Runs the activity queries against a preview's in-namespace database."""

    def __init__(self, config: ActivityConfig) -> None:
        self._config = config

    def database_url(self, namespace: str, password: str) -> URL:
        return URL.create(
            "mysql+asyncmy",
            username=self._config.db_user,
            password=password,
            host=self._config.db_host_template.format(namespace=namespace),
            port=self._config.db_port,
            database=self._config.db_name,
        )

    async def recent_activity(self, namespace: str, password: str) -> dict[str, bool]:
        """Return, per signal, whether a row exists inside the lookback window.

        Errors are not handled here; the caller decides how to treat them.
        """
        engine = create_async_engine(
            self.database_url(namespace, password),
            poolclass=NullPool,
        )
        log = logger.bind(namespace=namespace)
        signals: dict[str, bool] = {}
        try:
            async with engine.connect() as conn:
                for signal, query in ACTIVITY_QUERIES.items():
                    result = await conn.execute(
                        text(query),
                        {"hours": self._config.lookback_hours},
                    )
                    signals[signal] = result.first() is not None
        finally:
            await engine.dispose()

        log.debug("activity.signals", **signals)
        return signals
