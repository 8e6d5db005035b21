"""Run recorder: one immutable row per run attempt."""

import logging
from typing import Optional

from agent0.errors import Agent0Error, PersistenceError
from agent0.models.run import Run, RunData
from agent0.store import DataStore
from agent0.utils.identifiers import epoch_to_timestamp, generate_run_id, utc_timestamp

logger = logging.getLogger(__name__)


class RunRecorder:
    """Writes run rows. Never updates one."""

    table = "runs"

    def __init__(self, store: DataStore):
        self.store = store

    def record(
        self,
        workspace_id: str,
        version_id: str,
        run_data: RunData,
        start_time: Optional[float] = None,
        is_error: bool = False,
        is_test: bool = False,
    ) -> Run:
        """
        Persist a concluded run.

        Args:
            workspace_id: Workspace that owns the agent
            version_id: Version that was run
            run_data: Request, steps, error and metrics
            start_time: Epoch seconds when the request arrived (used as created_at)
            is_error: Whether the run failed
            is_test: Whether the run came from the dashboard's test console

        Returns:
            The stored run

        Raises:
            PersistenceError: The store rejected the row
        """
        run = Run(
            id=generate_run_id(),
            workspace_id=workspace_id,
            version_id=version_id,
            created_at=epoch_to_timestamp(start_time) if start_time is not None else utc_timestamp(),
            is_error=is_error,
            is_test=is_test,
            data=run_data.model_copy(deep=True),
        )
        row = run.model_dump(mode="json")
        row["data"] = run.data.to_wire()

        try:
            self.store.insert(self.table, row)
        except PersistenceError:
            raise
        except (Agent0Error, OSError, ValueError) as e:
            raise PersistenceError(f"Could not record run {run.id}: {e}", cause=type(e).__name__) from e

        logger.info(f"Recorded run {run.id} for version {version_id} (error={is_error}, test={is_test})")
        return run
