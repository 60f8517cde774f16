"""Wire stores, model client and pipeline services together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from action_executor import ActionExecutor
from apply_engine import ApplyEngine
from collection_registry import CollectionRegistry
from field_registry import FieldRegistry

from app import settings
from app.activity import ActivityRecorder
from app.model_client import ChatCompletionsClient
from app.stores import MemoryActionStore, MemoryExecutionStore, MemoryRecordStore

logger = logging.getLogger("aiact.services")


@dataclass
class Services:
    records: object
    actions: object
    executions: object
    fields: FieldRegistry
    collections: CollectionRegistry
    activities: ActivityRecorder
    executor: ActionExecutor
    apply_engine: ApplyEngine


def build_services(use_db: bool | None = None, model=None, records=None, actions=None, executions=None) -> Services:
    """Build the pipeline on Postgres when ``USE_DB=1``, in memory otherwise.

    Explicit ``records``/``actions``/``executions`` take precedence, which is
    how tests swap in fakes.
    """
    if use_db is None:
        use_db = settings.USE_DB
    if use_db:
        from app.stores_db import DbActionStore, DbExecutionStore, DbRecordStore

        records = records or DbRecordStore()
        actions = actions or DbActionStore()
        executions = executions or DbExecutionStore()
    else:
        records = records or MemoryRecordStore()
        actions = actions or MemoryActionStore()
        executions = executions or MemoryExecutionStore()
    logger.info("services_built use_db=%s", bool(use_db))

    fields = FieldRegistry(records)
    collections = CollectionRegistry(records)
    activities = ActivityRecorder(records)
    executor = ActionExecutor(
        actions,
        executions,
        records,
        model or ChatCompletionsClient(),
        activities=activities,
        fields=fields,
        collections=collections,
    )
    return Services(
        records=records,
        actions=actions,
        executions=executions,
        fields=fields,
        collections=collections,
        activities=activities,
        executor=executor,
        apply_engine=ApplyEngine(executions, records, activities=activities),
    )
