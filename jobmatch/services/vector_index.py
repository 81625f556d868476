"""
Vector index access - nearest-neighbour job search and payload retrieval
over the resume and job collections in Qdrant.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from qdrant_client import models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from jobmatch.utils.exceptions import RetrievalError
from jobmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

_QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException)


@dataclass
class ScoredHit:
    id: str
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def job_id(self) -> str:
        # job points carry the record-store id in their payload
        return str(self.payload.get("id") or self.id)


@dataclass
class IndexedPoint:
    id: str
    payload: Optional[Dict[str, Any]] = None
    vector: Optional[Any] = None


class VectorIndex:
    """Async facade over the Qdrant client used by the matching pipeline"""

    def __init__(self, client, resume_collection: str = "resumes", job_collection: str = "jobs"):
        self._client = client
        self.resume_collection = resume_collection
        self.job_collection = job_collection

    async def query(
        self,
        index_name: str,
        vector_or_id: Union[str, Sequence[float]],
        k: int
    ) -> List[ScoredHit]:
        """
        Nearest neighbours in ``index_name``, best first.

        A string is treated as the id of a stored resume point, looked up in
        the resume collection, so no vector has to travel to the caller.
        """
        lookup_from = None
        if isinstance(vector_or_id, str):
            lookup_from = models.LookupLocation(collection=self.resume_collection)

        try:
            response = await self._client.query_points(
                collection_name=index_name,
                query=vector_or_id,
                lookup_from=lookup_from,
                limit=k,
                with_payload=True,
                with_vectors=False,
            )
        except _QDRANT_ERRORS as e:
            logger.error(f"Vector query on {index_name} failed: {e}")
            raise RetrievalError(
                f"Vector index unavailable: {e}",
                service_name="qdrant",
                operation="query",
                details={"collection": index_name},
                cause=e
            ) from e

        hits = [
            ScoredHit(id=str(p.id), score=float(p.score), payload=p.payload or {})
            for p in response.points
        ]
        logger.debug(f"Vector query on {index_name} returned {len(hits)} hits")
        return hits

    async def retrieve(
        self,
        index_name: str,
        ids: Sequence[str],
        with_payload: bool = True,
        with_vector: bool = False
    ) -> List[IndexedPoint]:
        try:
            records = await self._client.retrieve(
                collection_name=index_name,
                ids=list(ids),
                with_payload=with_payload,
                with_vectors=with_vector,
            )
        except _QDRANT_ERRORS as e:
            logger.error(f"Vector retrieve on {index_name} failed: {e}")
            raise RetrievalError(
                f"Vector index unavailable: {e}",
                service_name="qdrant",
                operation="retrieve",
                details={"collection": index_name, "ids": [str(i) for i in ids]},
                cause=e
            ) from e

        return [IndexedPoint(id=str(r.id), payload=r.payload, vector=r.vector) for r in records]

    async def nearest_jobs(self, resume_vector_id: str, k: int) -> List[ScoredHit]:
        return await self.query(self.job_collection, resume_vector_id, k)
