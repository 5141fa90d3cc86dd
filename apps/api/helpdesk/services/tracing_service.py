"""LangSmith tracing - runs, feedback and example datasets.

Tracing is best-effort: every client call is wrapped so that a LangSmith
outage is logged and the AI pipeline carries on. With no
LANGSMITH_API_KEY the tracer still hands out run ids but sends nothing.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from langsmith import Client

from helpdesk.core.config import settings

logger = logging.getLogger(__name__)


class Tracer:
    """Thin wrapper over `langsmith.Client` for the helpdesk pipelines."""

    def __init__(
        self,
        client: Client | None,
        project_name: str = "default",
        endpoint: str = "https://smith.langchain.com",
    ):
        self.client = client
        self.project_name = project_name
        self.endpoint = endpoint.rstrip("/")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def start_run(
        self,
        name: str,
        inputs: dict[str, Any],
        run_type: str = "chain",
        parent_run_id: UUID | None = None,
        run_id: UUID | None = None,
    ) -> UUID:
        """Open a run and return its id (generated locally)."""
        run_id = run_id or uuid4()
        if not self.client:
            return run_id
        try:
            self.client.create_run(
                name=name,
                inputs=inputs,
                run_type=run_type,
                id=run_id,
                parent_run_id=parent_run_id,
                project_name=self.project_name,
                start_time=datetime.now(timezone.utc),
            )
        except Exception as e:
            logger.warning(f"LangSmith create_run failed for {name}: {e}")
        return run_id

    def end_run(
        self,
        run_id: UUID,
        outputs: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        if not self.client:
            return
        try:
            self.client.update_run(
                run_id,
                outputs=outputs,
                error=error,
                end_time=datetime.now(timezone.utc),
            )
        except Exception as e:
            logger.warning(f"LangSmith update_run failed for {run_id}: {e}")

    def create_feedback(
        self,
        run_id: UUID,
        key: str,
        score: float | None = None,
        value: Any = None,
        comment: str | None = None,
    ) -> bool:
        if not self.client:
            return False
        try:
            self.client.create_feedback(
                run_id,
                key,
                score=score,
                value=value,
                comment=comment,
            )
            return True
        except Exception as e:
            logger.warning(f"LangSmith create_feedback failed for {run_id}: {e}")
            return False

    def store_example(
        self,
        dataset_name: str,
        description: str,
        inputs: dict[str, Any],
        outputs: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Add an example to `dataset_name`, creating the dataset on first use."""
        if not self.client:
            return False
        try:
            dataset = next(iter(self.client.list_datasets(dataset_name=dataset_name)), None)
            if dataset is None:
                dataset = self.client.create_dataset(dataset_name, description=description)
            self.client.create_example(
                inputs=inputs,
                outputs=outputs,
                dataset_id=dataset.id,
                metadata=metadata,
            )
            return True
        except Exception as e:
            logger.warning(f"LangSmith store_example failed for {dataset_name}: {e}")
            return False

    def get_run_url(self, run_id: UUID) -> str:
        return f"{self.endpoint}/projects/{self.project_name}/runs/{run_id}"

    def read_run_url(self, run_id: UUID) -> str | None:
        """Trace URL when the run exists upstream, else None."""
        if not self.client:
            return None
        try:
            self.client.read_run(run_id)
        except Exception as e:
            logger.info(f"LangSmith run {run_id} not readable: {e}")
            return None
        return self.get_run_url(run_id)


_tracer: Tracer | None = None


def build_tracer() -> Tracer:
    client = None
    if settings.tracing_enabled:
        client = Client(
            api_url=settings.LANGSMITH_API_URL,
            api_key=settings.LANGSMITH_API_KEY,
        )
    return Tracer(
        client,
        project_name=settings.LANGSMITH_PROJECT,
        endpoint=settings.LANGSMITH_ENDPOINT,
    )


def get_tracer() -> Tracer:
    """Process-wide tracer (FastAPI dependency)."""
    global _tracer
    if _tracer is None:
        _tracer = build_tracer()
    return _tracer
