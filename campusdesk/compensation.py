"""Compensating writes for multi-document workflows.

Workflows register an undo step right after each write succeeds. If a later
step raises, the registered steps run in reverse order and the original error
propagates to the caller.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from .database import LIST_LIMIT

logger = logging.getLogger(__name__)

UndoStep = Callable[[], Awaitable[Any]]


class Compensator:
    def __init__(self, name: str):
        self.name = name
        self._steps: List[UndoStep] = []

    def on_failure(self, step: UndoStep) -> None:
        self._steps.append(step)

    async def __aenter__(self) -> "Compensator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            return False
        logger.warning("%s failed (%s); rolling back %d write(s)", self.name, exc, len(self._steps))
        for step in reversed(self._steps):
            try:
                await step()
            except Exception as undo_exc:
                # Keep undoing the remaining steps; the original error is what the caller sees.
                logger.error("%s: compensation step failed: %s", self.name, undo_exc)
        return False


async def snapshot(
    db: AsyncIOMotorDatabase, collection: str, ids: Iterable[str], fields: Iterable[str]
) -> List[Dict[str, Any]]:
    ids = list(ids)
    if not ids:
        return []
    projection = {"_id": 0, "id": 1}
    projection.update({f: 1 for f in fields})
    return await db[collection].find({"id": {"$in": ids}}, projection).to_list(LIST_LIMIT)


def restorer(db: AsyncIOMotorDatabase, collection: str, docs: List[Dict[str, Any]], fields: Iterable[str]) -> UndoStep:
    """Undo step putting ``fields`` back to their snapshotted values (unsetting absent ones)."""
    fields = list(fields)

    async def restore() -> None:
        for doc in docs:
            to_set = {f: doc[f] for f in fields if f in doc}
            to_unset = {f: "" for f in fields if f not in doc}
            update: Dict[str, Any] = {}
            if to_set:
                update["$set"] = to_set
            if to_unset:
                update["$unset"] = to_unset
            if update:
                await db[collection].update_one({"id": doc["id"]}, update)

    return restore


def deleter(db: AsyncIOMotorDatabase, collection: str, doc_id: str) -> UndoStep:
    async def delete() -> None:
        await db[collection].delete_one({"id": doc_id})

    return delete


def reinserter(db: AsyncIOMotorDatabase, collection: str, doc: Dict[str, Any]) -> UndoStep:
    async def reinsert() -> None:
        await db[collection].insert_one(dict(doc))

    return reinsert


def set_puller(db: AsyncIOMotorDatabase, collection: str, doc_ids: Iterable[str], field: str,
               values: Iterable[str]) -> UndoStep:
    """Undo step removing ``values`` from the ``field`` set of each document in ``doc_ids``."""
    doc_ids, values = list(doc_ids), list(values)

    async def pull() -> None:
        if doc_ids and values:
            await db[collection].update_many({"id": {"$in": doc_ids}}, {"$pull": {field: {"$in": values}}})

    return pull


def set_adder(db: AsyncIOMotorDatabase, collection: str, doc_ids: Iterable[str], field: str,
              values: Iterable[str]) -> UndoStep:
    doc_ids, values = list(doc_ids), list(values)

    async def add() -> None:
        if doc_ids and values:
            await db[collection].update_many({"id": {"$in": doc_ids}}, {"$addToSet": {field: {"$each": values}}})

    return add
