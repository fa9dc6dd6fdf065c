"""
Corpus snapshot store.

A snapshot is a JSONL file (optionally zstd-compressed, ".jsonl.zst") with one
embedded chunk per line:

    {"user_id": "u1", "document_id": 7, "document_title": "Brand Guide",
     "category": "brand", "chunk_index": 0, "text": "...",
     "start_position": 0, "end_position": 812}

camelCase keys (documentId, documentTitle, ...) are accepted as well.
"""

import json
from collections import Counter
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import zstandard as zstd

from kb_rag.core.contracts import RAG_CATEGORIES, CorpusRecord, RagStats
from kb_rag.core.errors import CorpusFormatError
from kb_rag.core.logger import get_logger

logger = get_logger(__name__)

ZSTD_SUFFIX = ".zst"

_RECORD_ALIASES = {
    "userId": "user_id",
    "documentId": "document_id",
    "documentTitle": "document_title",
    "chunkIndex": "chunk_index",
    "startPosition": "start_position",
    "endPosition": "end_position",
}
_RECORD_FIELDS = {f.name for f in fields(CorpusRecord)}


def record_from_dict(data: Mapping[str, Any], line_number: int = 0) -> CorpusRecord:
    """
    Build a CorpusRecord from a snapshot row.

    Unknown keys are ignored; a null category becomes "general".

    Raises:
        CorpusFormatError: missing required field or unknown category
    """
    row = {_RECORD_ALIASES.get(key, key): value for key, value in data.items()}
    row = {key: value for key, value in row.items() if key in _RECORD_FIELDS}

    for name in ("user_id", "document_id", "document_title", "text"):
        if row.get(name) is None:
            raise CorpusFormatError(f"Line {line_number}: missing field '{name}'", line_number)

    row["category"] = row.get("category") or "general"
    if row["category"] not in RAG_CATEGORIES:
        raise CorpusFormatError(
            f"Line {line_number}: unknown category '{row['category']}'", line_number
        )

    try:
        row["user_id"] = str(row["user_id"])
        row["document_id"] = int(row["document_id"])
        row["chunk_index"] = int(row.get("chunk_index") or 0)
    except (TypeError, ValueError) as e:
        raise CorpusFormatError(f"Line {line_number}: {e}", line_number)

    return CorpusRecord(**row)


class CorpusStore:
    """In-memory view of a corpus snapshot."""

    def __init__(self, records: Optional[Iterable[CorpusRecord]] = None):
        """
        Initialize store.

        Args:
            records: Snapshot records
        """
        self.records: List[CorpusRecord] = list(records or [])

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CorpusStore":
        """
        Load a snapshot from disk.

        Args:
            path: Path to a .jsonl or .jsonl.zst file

        Returns:
            CorpusStore instance

        Raises:
            CorpusFormatError: a line is not valid JSON or not a valid record
        """
        path = Path(path)
        raw = path.read_bytes()
        if path.suffix == ZSTD_SUFFIX:
            # frames written by other tools may not record their content size
            raw = zstd.ZstdDecompressor().decompressobj().decompress(raw)

        records = []
        for line_number, line in enumerate(raw.decode("utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise CorpusFormatError(f"Line {line_number}: invalid JSON: {e}", line_number)
            if not isinstance(data, dict):
                raise CorpusFormatError(f"Line {line_number}: expected a JSON object", line_number)
            records.append(record_from_dict(data, line_number))

        logger.debug("Loaded %d corpus records from %s", len(records), path)
        return cls(records)

    @staticmethod
    def write(path: Union[str, Path], records: Iterable[CorpusRecord], level: int = 3) -> Path:
        """
        Write records as a snapshot (zstd-compressed when the path ends in .zst).

        Args:
            path: Output path
            records: Records to write
            level: zstd compression level

        Returns:
            Path written
        """
        path = Path(path)
        lines = [json.dumps(asdict(record), ensure_ascii=False) for record in records]
        data = ("\n".join(lines) + "\n").encode("utf-8")
        if path.suffix == ZSTD_SUFFIX:
            data = zstd.ZstdCompressor(level=level).compress(data)

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def records_for(
        self,
        user_id: str,
        categories: Optional[Sequence[str]] = None,
        document_ids: Optional[Sequence[int]] = None,
        embedded_only: bool = True,
    ) -> List[CorpusRecord]:
        """
        Records visible to a user.

        Deleted records are always excluded; empty categories/document_ids
        mean no restriction.
        """
        allowed_categories = set(categories) if categories else None
        allowed_documents = set(document_ids) if document_ids else None

        return [
            record
            for record in self.records
            if record.user_id == user_id
            and not record.deleted
            and (record.embedded or not embedded_only)
            and (allowed_categories is None or record.category in allowed_categories)
            and (allowed_documents is None or record.document_id in allowed_documents)
        ]

    def is_rag_available(self, user_id: str, categories: Optional[Sequence[str]] = None) -> bool:
        """Whether the user has at least one embedded chunk in the categories."""
        return bool(self.records_for(user_id, categories=categories))

    def get_rag_stats(self, user_id: str) -> RagStats:
        """
        Document and chunk counts for a user (deleted documents excluded).

        A document counts as embedded if any of its chunks is.
        """
        records = self.records_for(user_id, embedded_only=False)

        documents = {}
        for record in records:
            documents.setdefault(record.document_id, record.category)

        return RagStats(
            total_documents=len(documents),
            total_chunks=len(records),
            documents_by_category=dict(Counter(documents.values())),
            has_embedded_documents=any(record.embedded for record in records),
        )

    def chunk_text(self, user_id: str, document_id: int, chunk_index: int) -> Optional[str]:
        """Text of one embedded chunk of a user's document, or None if absent."""
        for record in self.records_for(user_id, document_ids=[document_id]):
            if record.chunk_index == chunk_index:
                return record.text
        return None

    def document_chunks(self, user_id: str, document_id: int) -> List[CorpusRecord]:
        """
        Embedded chunks of a user's document, ordered by chunk index.

        Records carry start_position/end_position when ingestion recorded them.
        """
        return sorted(
            self.records_for(user_id, document_ids=[document_id]),
            key=lambda record: record.chunk_index,
        )
