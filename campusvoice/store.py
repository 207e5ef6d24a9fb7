# Grievance storage: an in-memory map for tests/demo and a MongoDB collection for deployment

import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import count
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from .models import Analysis, Category, Grievance, GrievanceCreate, GrievanceStatus, Urgency

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Underlying storage fault."""


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GrievanceFilter:
    category: Optional[Category] = None
    urgency: Optional[Urgency] = None
    status: Optional[GrievanceStatus] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def matches(self, g: Grievance) -> bool:
        if self.category is not None and g.category != self.category:
            return False
        if self.urgency is not None and g.urgency != self.urgency:
            return False
        if self.status is not None and g.status != self.status:
            return False
        if self.start is not None and g.created_at < self.start:
            return False
        if self.end is not None and g.created_at > self.end:
            return False
        return True


class GrievanceStore(Protocol):
    async def insert(self, data: GrievanceCreate, analysis: Analysis) -> Grievance: ...

    async def list(self, flt: Optional[GrievanceFilter] = None) -> List[Grievance]: ...

    async def get(self, grievance_id: str) -> Optional[Grievance]: ...

    async def update_status(self, grievance_id: str, expected: GrievanceStatus,
                            target: GrievanceStatus) -> Optional[Grievance]:
        """Move to ``target`` only if the record is still in ``expected``; None otherwise."""
        ...

    async def delete(self, grievance_id: str) -> bool: ...


def new_grievance(data: GrievanceCreate, analysis: Analysis, now: datetime) -> Grievance:
    return Grievance(
        id=str(uuid.uuid4()),
        student_name=data.student_name, student_email=data.student_email,
        complaint=data.complaint,
        category=analysis.category, urgency=analysis.urgency,
        sentiment=analysis.sentiment, summary=analysis.summary,
        status=GrievanceStatus.SUBMITTED,
        attachments=list(data.attachments),
        created_at=now, updated_at=now,
    )


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------
class InMemoryGrievanceStore:
    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._records: Dict[str, Tuple[int, Grievance]] = {}
        self._seq = count()

    async def insert(self, data: GrievanceCreate, analysis: Analysis) -> Grievance:
        g = new_grievance(data, analysis, self._clock())
        self._records[g.id] = (next(self._seq), g)
        return g.model_copy(deep=True)

    async def list(self, flt: Optional[GrievanceFilter] = None) -> List[Grievance]:
        flt = flt or GrievanceFilter()
        rows = [(seq, g) for seq, g in self._records.values() if flt.matches(g)]
        rows.sort(key=lambda row: (row[1].created_at, row[0]), reverse=True)
        return [g.model_copy(deep=True) for _, g in rows]

    async def get(self, grievance_id: str) -> Optional[Grievance]:
        row = self._records.get(grievance_id)
        return row[1].model_copy(deep=True) if row else None

    async def update_status(self, grievance_id: str, expected: GrievanceStatus,
                            target: GrievanceStatus) -> Optional[Grievance]:
        row = self._records.get(grievance_id)
        if row is None or row[1].status != expected:
            return None
        seq, g = row
        updated = g.model_copy(update={"status": target, "updated_at": self._clock()})
        self._records[grievance_id] = (seq, updated)
        return updated.model_copy(deep=True)

    async def delete(self, grievance_id: str) -> bool:
        return self._records.pop(grievance_id, None) is not None


# ---------------------------------------------------------------------------
# MongoDB
# ---------------------------------------------------------------------------
def grievance_to_doc(g: Grievance) -> dict:
    doc = g.model_dump(mode="python", by_alias=False)
    doc["_id"] = doc.pop("id")
    for key in ("category", "urgency", "sentiment", "status"):
        doc[key] = doc[key].value
    return doc


def doc_to_grievance(doc: dict) -> Grievance:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    # pymongo hands back naive datetimes unless the client is tz_aware
    for key in ("created_at", "updated_at"):
        if doc.get(key) is not None and doc[key].tzinfo is None:
            doc[key] = doc[key].replace(tzinfo=timezone.utc)
    return Grievance(**doc)


def filter_to_query(flt: Optional[GrievanceFilter]) -> dict:
    query: dict = {}
    if flt is None:
        return query
    if flt.category is not None:
        query["category"] = flt.category.value
    if flt.urgency is not None:
        query["urgency"] = flt.urgency.value
    if flt.status is not None:
        query["status"] = flt.status.value
    created: dict = {}
    if flt.start is not None:
        created["$gte"] = flt.start
    if flt.end is not None:
        created["$lte"] = flt.end
    if created:
        query["created_at"] = created
    return query


class MongoGrievanceStore:
    """pymongo is synchronous; every call runs on ``executor``."""

    def __init__(self, collection, executor: Optional[ThreadPoolExecutor] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.collection = collection
        self.executor = executor or ThreadPoolExecutor(max_workers=10)
        self._clock = clock

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, fn, *args)
        except PyMongoError as e:
            logger.error("MongoDB error: %s", e)
            raise StoreError(str(e)) from e

    async def ensure_indexes(self):
        for field in ("created_at", "status", "category", "urgency"):
            await self._run(self.collection.create_index, field)

    async def insert(self, data: GrievanceCreate, analysis: Analysis) -> Grievance:
        g = new_grievance(data, analysis, self._clock())
        await self._run(self.collection.insert_one, grievance_to_doc(g))
        return g

    async def list(self, flt: Optional[GrievanceFilter] = None) -> List[Grievance]:
        query = filter_to_query(flt)
        def fetch():
            return list(self.collection.find(query).sort([("created_at", DESCENDING),
                                                          ("_id", DESCENDING)]))
        docs = await self._run(fetch)
        return [doc_to_grievance(d) for d in docs]

    async def get(self, grievance_id: str) -> Optional[Grievance]:
        doc = await self._run(self.collection.find_one, {"_id": grievance_id})
        return doc_to_grievance(doc) if doc else None

    async def update_status(self, grievance_id: str, expected: GrievanceStatus,
                            target: GrievanceStatus) -> Optional[Grievance]:
        def update():
            return self.collection.find_one_and_update(
                {"_id": grievance_id, "status": expected.value},
                {"$set": {"status": target.value, "updated_at": self._clock()}},
                return_document=ReturnDocument.AFTER)
        doc = await self._run(update)
        return doc_to_grievance(doc) if doc else None

    async def delete(self, grievance_id: str) -> bool:
        result = await self._run(self.collection.delete_one, {"_id": grievance_id})
        return result.deleted_count > 0
