import logging
import time
from typing import Optional

from ..config import DbSettings, get_settings
from ..exceptions import DbError
from .pdo import PdoConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Holder of the connection shared by an application.

    With ``max_lifetime`` at zero or more, a connection older than that many
    seconds is replaced on access by a new one opened with the same
    parameters.
    """

    def __init__(self, max_lifetime: Optional[int] = None, settings: Optional[DbSettings] = None):
        settings = settings or get_settings()
        self.max_lifetime = settings.MAX_LIFETIME if max_lifetime is None else max_lifetime
        self._instance: Optional[PdoConnection] = None

    def set_instance(self, instance: PdoConnection) -> PdoConnection:
        self._instance = instance
        return self._instance

    def get_instance(self) -> PdoConnection:
        if self._instance is None:
            raise DbError("No global connection has been activated")

        if self.max_lifetime >= 0 and (time.time() - self._instance.start_time) >= self.max_lifetime:
            expired = self._instance
            self._instance = None
            logger.info(f"Shared connection exceeded its {self.max_lifetime}s lifetime, reconnecting")
            self.set_instance(PdoConnection(**expired.get_db_params(), settings=expired.settings))
            expired.close()

        return self._instance

    def reset_instance(self) -> None:
        self._instance = None
