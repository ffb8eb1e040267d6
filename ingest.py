"""Read record CSVs, embed them in batches, and upsert them into Pinecone."""
import enum
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import pandas as pd

from config import (
    DATA_DIR,
    SOURCE_FILES,
    BATCH_SIZE,
    PACING_DELAY_SECONDS,
    EMBED_CHAR_LIMIT,
    RATE_LIMIT_COOLDOWN_SECONDS,
    RATE_LIMIT_MAX_RETRIES,
)
from embeddings import EmbeddingClient, is_rate_limit_error
from normalizer import Record, RecordNormalizer
from vector_store import Vector, VectorStoreClient, VectorStoreError

logger = logging.getLogger(__name__)


class BatchState(enum.Enum):
    PENDING = "pending"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


class DimensionMismatchError(ValueError):
    """Raised when an embedding's length differs from the run's dimension."""


class BatchFailedError(RuntimeError):
    """A batch could not be embedded or upserted; fatal to the whole run."""

    def __init__(self, source: str, batch_number: int, cause: BaseException):
        super().__init__(f"{source} batch {batch_number} failed: {cause}")
        self.source = source
        self.batch_number = batch_number
        self.cause = cause


@dataclass
class IngestionReport:
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def _fold_extra_fields(width: int, path: Path) -> Callable[[list[str]], list[str]]:
    """Keep over-long rows by joining the surplus fields back into the last column."""
    def fold(fields: list[str]) -> list[str]:
        logger.warning(
            "%s: row has %d fields for a %d-column header; folding the extras into the last column",
            path.name, len(fields), width,
        )
        return fields[:width - 1] + [",".join(fields[width - 1:])]
    return fold


def read_rows(path: str | Path) -> list[dict[str, str]]:
    """Load a CSV with a header row as a list of string-valued dicts.

    Tolerates a UTF-8 BOM, blank lines and ragged rows: short rows are padded
    with "" and over-long rows (usually unquoted commas in a text field) keep
    their extra fields joined into the last column. No row is dropped.
    """
    path = Path(path)
    options = dict(dtype=str, keep_default_na=False, encoding="utf-8-sig", engine="python")
    try:
        header = pd.read_csv(path, nrows=0, index_col=False, **options).columns
        # header=None stops pandas from treating the first column as an index
        # when data rows are wider than the header
        df = pd.read_csv(
            path,
            header=None,
            skip_blank_lines=True,
            on_bad_lines=_fold_extra_fields(len(header), path),
            **options,
        )
    except pd.errors.EmptyDataError:
        return []
    df = df.iloc[1:].set_axis(header, axis=1).fillna("")
    return df.to_dict(orient="records")


def _batches(records: Sequence[Record], size: int) -> list[Sequence[Record]]:
    return [records[i:i + size] for i in range(0, len(records), size)]


class IngestionPipeline:
    """Drives normalize -> batch -> embed -> upsert for each record family.

    Files and batches run strictly one after another so that the rate-limit
    cooldown and the pacing delay throttle the whole process.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStoreClient,
        batch_size: int = BATCH_SIZE,
        namespace: str | None = None,
        rate_limit_cooldown: float = RATE_LIMIT_COOLDOWN_SECONDS,
        rate_limit_max_retries: int = RATE_LIMIT_MAX_RETRIES,
        pacing_delay: float = PACING_DELAY_SECONDS,
        embed_char_limit: int = EMBED_CHAR_LIMIT,
        expected_dimension: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.namespace = namespace or store.namespace
        self.rate_limit_cooldown = rate_limit_cooldown
        self.rate_limit_max_retries = rate_limit_max_retries
        self.pacing_delay = pacing_delay
        self.embed_char_limit = embed_char_limit
        self.dimension = expected_dimension
        self._sleep = sleep

    def _check_dimension(self, vectors: list[list[float]]) -> None:
        for values in vectors:
            if self.dimension is None:
                self.dimension = len(values)
                logger.info("Embedding dimension for this run: %d", self.dimension)
            elif len(values) != self.dimension:
                raise DimensionMismatchError(
                    f"Embedding has {len(values)} dimensions, expected {self.dimension}"
                )

    def _process_batch(self, batch: Sequence[Record], source: str,
                       number: int, total: int) -> int:
        """Run one batch through PENDING -> EMBEDDING -> UPSERTING -> DONE."""
        state = BatchState.PENDING
        cooldowns = 0
        vectors: list[Vector] = []
        upserted = 0
        failure: BaseException | None = None

        while True:
            if state is BatchState.PENDING:
                logger.info("Processing %s batch %d/%d (%d items)", source, number, total, len(batch))
                state = BatchState.EMBEDDING

            elif state is BatchState.EMBEDDING:
                texts = [record.text[:self.embed_char_limit] for record in batch]
                try:
                    values = self.embedder.embed(texts)
                except Exception as e:
                    if is_rate_limit_error(e) and cooldowns < self.rate_limit_max_retries:
                        cooldowns += 1
                        logger.warning(
                            "Embedding rate limited on %s batch %d; retrying in %.0fs (%d/%d)",
                            source, number, self.rate_limit_cooldown,
                            cooldowns, self.rate_limit_max_retries,
                        )
                        self._sleep(self.rate_limit_cooldown)
                        state = BatchState.PENDING
                        continue
                    failure = e
                    state = BatchState.FAILED
                    continue
                try:
                    self._check_dimension(values)
                except DimensionMismatchError as e:
                    failure = e
                    state = BatchState.FAILED
                    continue
                vectors = [
                    Vector(id=record.id, values=v, metadata=record.metadata)
                    for record, v in zip(batch, values)
                ]
                state = BatchState.UPSERTING

            elif state is BatchState.UPSERTING:
                try:
                    upserted = self.store.upsert(vectors, namespace=self.namespace)
                except VectorStoreError as e:
                    failure = e
                    state = BatchState.FAILED
                    continue
                state = BatchState.DONE

            elif state is BatchState.DONE:
                return upserted

            else:
                logger.error("%s batch %d failed: %s", source, number, failure)
                raise BatchFailedError(source, number, failure) from failure

    def ingest_rows(self, rows: Sequence[Mapping[str, Any]], source: str) -> int:
        """Normalize, embed and upsert rows of one family. Returns vectors upserted."""
        if not rows:
            logger.info("No rows for %s; nothing to ingest", source)
            return 0
        normalizer = RecordNormalizer(source)
        records = [normalizer.normalize(row, i) for i, row in enumerate(rows)]
        batches = _batches(records, self.batch_size)

        total = 0
        for number, batch in enumerate(batches, 1):
            count = self._process_batch(batch, source, number, len(batches))
            total += count
            logger.info("Upserted %d vectors from %s batch %d. Total so far=%d", count, source, number, total)
            self._sleep(self.pacing_delay)
        logger.info("Completed ingestion for %s: %d vectors", source, total)
        return total

    def ingest_file(self, path: str | Path, source: str) -> int:
        path = Path(path)
        logger.info("Ingesting %s from %s -> namespace=%s", source, path, self.namespace)
        rows = read_rows(path)
        logger.info("Found %d rows in %s", len(rows), path.name)
        return self.ingest_rows(rows, source)

    def run(self, sources: Mapping[str, str] | None = None,
            data_dir: str | Path | None = None) -> IngestionReport:
        """Ingest every configured family in order; the first failed batch aborts the run."""
        sources = SOURCE_FILES if sources is None else sources
        folder = Path(data_dir or DATA_DIR)
        report = IngestionReport()
        for source, filename in sources.items():
            path = folder / filename
            if not path.exists():
                logger.warning("Missing file %s; skipping %s", path, source)
                continue
            report.counts[source] = self.ingest_file(path, source)
        logger.info("All ingestion finished: %d vectors upserted", report.total)
        return report


def _index_dimension(store: VectorStoreClient) -> int | None:
    stats = store.describe_index_stats()
    dimension = stats.get("dimension")
    return int(dimension) if dimension else None


def ingest() -> IngestionReport:
    from health import check_startup
    check_startup()

    with VectorStoreClient() as store:
        pipeline = IngestionPipeline(
            embedder=EmbeddingClient(),
            store=store,
            expected_dimension=_index_dimension(store),
        )
        return pipeline.run()


def main() -> int:
    try:
        ingest()
    except Exception:
        logger.exception("Fatal ingestion error")
        return 1
    return 0


if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    sys.exit(main())
