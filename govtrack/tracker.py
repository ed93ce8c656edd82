"""
Tracker facade: one data directory, one store, all components wired once.

Example:
    tr = Tracker(".govtrack")
    goal = tr.entities.create("goal", {"title": "Safe streets"})
    problem = tr.entities.create("problem", {"title": "Broken streetlight"})
    tr.relations.link(problem.id, "threatens", goal.id)
"""

import logging
from pathlib import Path
from typing import Optional

from .config import TrackerConfig, load_or_create_config
from .entities import EntityRepository
from .government import COLLECTION as GOVERNMENTS, GovernmentRegistry
from .issues import IssueTracker
from .protocol import RecordStoreProtocol
from .record_store import RecordStore
from .relations import RelationEngine
from .similarity import SimilarityEngine

logger = logging.getLogger(__name__)


class Tracker:
    """
    Entry point for the civic tracker.

    Attributes:
        governments: GovernmentRegistry
        entities: EntityRepository (goals, problems, ideas, actions)
        relations: RelationEngine
        similarity: SimilarityEngine
        issues: IssueTracker (legacy flat issues)
    """

    def __init__(
        self,
        data_dir: str | Path,
        *,
        config: Optional[TrackerConfig] = None,
        store: Optional[RecordStoreProtocol] = None,
        ops_log: bool = True,
    ) -> None:
        """
        Open (or initialize) a data directory.

        Args:
            data_dir: The ``.govtrack`` directory holding records and config
            config: Pre-loaded config (skips filesystem config discovery)
            store: Injected record store (tests, custom setups)
            ops_log: Attach the rotating operations log for this directory
        """
        self._data_dir = Path(data_dir).resolve()
        self._config = config or load_or_create_config(self._data_dir)

        self._ops_log_handler = None
        if ops_log:
            from .logging_config import configure_ops_log
            self._ops_log_handler = configure_ops_log(self._data_dir)

        self._store: RecordStoreProtocol = store if store is not None else RecordStore(self._data_dir)

        self.governments = GovernmentRegistry(self._store)
        self.entities = EntityRepository(self._store, self.governments)
        self.relations = RelationEngine(self.entities)
        self.similarity = SimilarityEngine(self.entities)
        self.issues = IssueTracker(self._store, self.governments)
        logger.debug("Opened tracker at %s", self._data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def config(self) -> TrackerConfig:
        return self._config

    def stats(self, gov_id: Optional[str] = None) -> dict:
        """Entity counts by type and status, plus legacy issue totals."""
        counts = self.entities.get_counts(gov_id)
        issues = self.issues.list({"gov_id": gov_id} if gov_id else None)
        counts["issues"] = len(issues)
        counts["governments"] = self._store.count(GOVERNMENTS)
        return counts

    def close(self) -> None:
        """Detach the operations log handler."""
        if self._ops_log_handler is not None:
            logging.getLogger("govtrack").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
