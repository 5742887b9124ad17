"""Core service resolving large id lists through paced bulk lookups."""

import logging
from typing import AsyncIterator, Iterable, Iterator, List, Sequence, Tuple

from flockcli.domain.events.api_events import BatchResolved, dispatch_event
from flockcli.domain.interfaces.social_api import SocialApi
from flockcli.domain.models.common import LookupKind, OperationClass, Record
from flockcli.domain.models.errors import ConfigurationError, RemoteFetchError
from flockcli.infrastructure.config.settings import DEFAULT_LOOKUP_BATCH_SIZE, MAX_LOOKUP_BATCH_SIZE
from flockcli.infrastructure.resilience.pacing import PacingEngine

logger = logging.getLogger(__name__)

Batch = Tuple[str, ...]


def partition(identifiers: Iterable[str], batch_size: int) -> Iterator[Batch]:
    """Splits identifiers into consecutive batches, preserving order; the last may be short."""
    if batch_size < 1:
        raise ConfigurationError(f"Batch size must be positive, got {batch_size}")
    batch: List[str] = []
    for identifier in identifiers:
        batch.append(identifier)
        if len(batch) == batch_size:
            yield tuple(batch)
            batch = []
    if batch:
        yield tuple(batch)


def record_id(record: Record) -> str:
    """The record's id as a string, preferring the lossless ``id_str`` field."""
    if "id_str" in record:
        return str(record["id_str"])
    return str(record.get("id", ""))


def order_like(batch: Sequence[str], records: List[Record]) -> List[Record]:
    """Orders resolved records by their id's position in the batch.

    Records whose id is not in the batch keep their response order, after
    the matched ones.
    """
    position = {identifier: index for index, identifier in enumerate(batch)}
    fallback = len(batch)
    return sorted(records, key=lambda record: position.get(record_id(record), fallback))


class BulkResolver:
    """Resolves identifiers in fixed-size batches, paced as LOOKUP requests."""

    def __init__(
        self,
        api: SocialApi,
        pacing: PacingEngine,
        batch_size: int = DEFAULT_LOOKUP_BATCH_SIZE,
    ):
        if not 1 <= batch_size <= MAX_LOOKUP_BATCH_SIZE:
            raise ConfigurationError(
                f"Batch size must be between 1 and {MAX_LOOKUP_BATCH_SIZE}, got {batch_size}"
            )
        self.api = api
        self.pacing = pacing
        self.batch_size = batch_size

    async def resolve(
        self,
        identifiers: Iterable[str],
        kind: LookupKind = LookupKind.STATUSES,
        include_entities: bool = True,
    ) -> AsyncIterator[Record]:
        """Yields resolved records batch by batch.

        Identifiers that cannot be resolved (deleted, protected, suspended)
        are simply missing from the output.

        Raises:
            RemoteFetchError: If a lookup request fails; earlier records stay valid.
        """
        normalized = (str(identifier) for identifier in identifiers)
        for number, batch in enumerate(partition(normalized, self.batch_size), start=1):
            await self.pacing.pause(OperationClass.LOOKUP)
            try:
                records = await self.api.lookup(kind, batch, include_entities=include_entities)
            except RemoteFetchError:
                logger.error(f"Lookup batch {number} ({len(batch)} ids) failed")
                raise
            except Exception as e:
                logger.error(f"Unexpected error in lookup batch {number}: {e}", exc_info=True)
                raise RemoteFetchError(f"Lookup batch {number} failed: {e}") from e

            if len(records) < len(batch):
                logger.debug(f"Batch {number}: {len(batch) - len(records)} of {len(batch)} ids not resolved")
            dispatch_event(BatchResolved(batch_number=number, requested=len(batch), resolved=len(records)))
            for record in order_like(batch, records):
                yield record
