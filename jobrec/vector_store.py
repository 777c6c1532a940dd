"""
Vector storage for JobRec.

Embeddings live in a SQLite file as float32 blobs, grouped into named
collections. Queries are exhaustive: every vector in the collection is scored
with numpy and the nearest ones are returned.
"""

import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from rich.console import Console

from .errors import CollaboratorUnavailable

console = Console()


class Collection(Protocol):
    """What the pipeline needs from a vector store collection."""

    def count(self) -> int:
        ...

    def add(self, ids: List[str], documents: List[str], embeddings: List[List[float]]) -> None:
        ...

    def query(self, embedding: Sequence[float], top_k: int) -> Dict[str, List[List]]:
        ...


class VectorStore(Protocol):
    def get_or_create_collection(self, name: str) -> Collection:
        ...


class SQLiteCollection:
    """A named set of (id, document, embedding) rows."""

    def __init__(self, store: "SQLiteVectorStore", name: str):
        self.store = store
        self.name = name

    def count(self) -> int:
        row = self.store.conn.execute(
            "SELECT COUNT(*) AS total FROM embeddings WHERE collection = ?", (self.name,)
        ).fetchone()
        return row["total"]

    def dimension(self) -> Optional[int]:
        row = self.store.conn.execute(
            "SELECT dimension FROM collections WHERE name = ?", (self.name,)
        ).fetchone()
        return row["dimension"] if row else None

    def add(self, ids: List[str], documents: List[str], embeddings: List[List[float]]) -> None:
        """
        Add rows to the collection. Either every row is stored or none is.

        Raises:
            ValueError: Mismatched lengths, duplicate ids or inconsistent dimensions
            CollaboratorUnavailable: The database rejected the write
        """
        if not (len(ids) == len(documents) == len(embeddings)):
            raise ValueError(
                f"ids ({len(ids)}), documents ({len(documents)}) and embeddings "
                f"({len(embeddings)}) must have the same length"
            )
        if not ids:
            return
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate ids in batch")

        vectors = [np.asarray(vector, dtype=np.float32) for vector in embeddings]
        dimension = self.dimension() or len(vectors[0])
        for record_id, vector in zip(ids, vectors):
            if vector.ndim != 1 or len(vector) != dimension:
                raise ValueError(
                    f"Embedding for {record_id} has shape {vector.shape}, expected ({dimension},)"
                )

        rows = [
            (self.name, str(record_id), document, vector.tobytes())
            for record_id, document, vector in zip(ids, documents, vectors)
        ]

        try:
            with self.store.conn:
                self.store.conn.execute(
                    "UPDATE collections SET dimension = ? WHERE name = ? AND dimension IS NULL",
                    (dimension, self.name)
                )
                self.store.conn.executemany(
                    "INSERT INTO embeddings (collection, id, document, embedding) VALUES (?, ?, ?, ?)",
                    rows
                )
        except sqlite3.Error as e:
            raise CollaboratorUnavailable(f"Failed to add {len(rows)} rows to {self.name}: {e}") from e

    def query(self, embedding: Sequence[float], top_k: int) -> Dict[str, List[List]]:
        """
        Return the ``top_k`` nearest rows, nearest first.

        Ties keep insertion order. A collection smaller than ``top_k`` yields
        every row it has.
        """
        if top_k <= 0:
            return {"ids": [[]], "distances": [[]]}

        rows = self.store.conn.execute(
            "SELECT id, embedding FROM embeddings WHERE collection = ? ORDER BY rowid",
            (self.name,)
        ).fetchall()
        if not rows:
            return {"ids": [[]], "distances": [[]]}

        query_vector = np.asarray(embedding, dtype=np.float32)
        matrix = np.stack([np.frombuffer(row["embedding"], dtype=np.float32) for row in rows])
        if matrix.shape[1] != query_vector.shape[0]:
            raise ValueError(
                f"Query has {query_vector.shape[0]} dimensions, collection {self.name} has {matrix.shape[1]}"
            )

        distances = self.store.distance(matrix, query_vector)
        order = np.argsort(distances, kind="stable")[:top_k]

        return {
            "ids": [[rows[i]["id"] for i in order]],
            "distances": [[float(distances[i]) for i in order]],
        }


class SQLiteVectorStore:
    """SQLite-backed vector store with cosine or squared-L2 distance."""

    METRICS = ("cosine", "l2")

    def __init__(self, db_path: str = "data/jobrec.db", metric: str = "cosine"):
        if metric not in self.METRICS:
            raise ValueError(f"Unknown distance metric: {metric}")
        self.db_path = db_path
        self.metric = metric
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self):
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    name TEXT PRIMARY KEY,
                    dimension INTEGER,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS embeddings (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    document TEXT,
                    embedding BLOB NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id),
                    FOREIGN KEY (collection) REFERENCES collections (name)
                )
            """)

    def get_or_create_collection(self, name: str) -> SQLiteCollection:
        with self.conn:
            self.conn.execute("INSERT OR IGNORE INTO collections (name) VALUES (?)", (name,))
        return SQLiteCollection(self, name)

    def list_collections(self) -> List[Dict]:
        rows = self.conn.execute("""
            SELECT c.name, c.dimension, COUNT(e.id) AS count
            FROM collections c
            LEFT JOIN embeddings e ON e.collection = c.name
            GROUP BY c.name
            ORDER BY c.name
        """).fetchall()
        return [dict(row) for row in rows]

    def delete_collection(self, name: str) -> bool:
        with self.conn:
            self.conn.execute("DELETE FROM embeddings WHERE collection = ?", (name,))
            cursor = self.conn.execute("DELETE FROM collections WHERE name = ?", (name,))
        return cursor.rowcount > 0

    def distance(self, matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
        """Distance from every row of ``matrix`` to ``vector``; lower is closer."""
        if self.metric == "l2":
            diff = matrix - vector
            return np.einsum("ij,ij->i", diff, diff)

        row_norms = np.linalg.norm(matrix, axis=1)
        vector_norm = np.linalg.norm(vector)
        denominator = row_norms * vector_norm
        # Zero vectors are maximally distant rather than NaN
        similarity = np.divide(
            matrix @ vector, denominator,
            out=np.zeros(len(matrix), dtype=np.float32), where=denominator > 0
        )
        return 1.0 - similarity

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class VectorStoreAdapter:
    """Ingestion and similarity queries against one collection."""

    def __init__(self, store: VectorStore, collection_name: str = "job_collection"):
        self.store = store
        self.collection_name = collection_name
        self.collection = store.get_or_create_collection(collection_name)

    def count(self) -> int:
        return self.collection.count()

    def ingest(self, ids: List[str], documents: List[str], embeddings: List[List[float]]) -> bool:
        """
        Add the corpus unless the collection already holds records.

        Only emptiness is checked: a changed corpus is not detected and needs
        the collection to be reset first.

        Returns:
            True if rows were added, False if ingestion was skipped
        """
        existing = self.count()
        if existing > 0:
            console.print(
                f"[dim]Collection {self.collection_name} already holds {existing} records, skipping ingestion[/dim]"
            )
            return False

        self.collection.add(ids=ids, documents=documents, embeddings=embeddings)
        return True

    def query(self, vector: Sequence[float], k: int) -> List[Tuple[str, float]]:
        """Return up to ``k`` (id, distance) pairs, nearest first."""
        results = self.collection.query(vector, k)
        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        return [(str(record_id), float(distance)) for record_id, distance in zip(ids, distances)]


def get_vector_store(db_path: Optional[str] = None, metric: Optional[str] = None) -> SQLiteVectorStore:
    """Get a vector store configured from settings."""
    from .config import get_config_manager
    config = get_config_manager()
    if db_path is None:
        db_path = config.get('vector_store', 'path')
    if metric is None:
        metric = config.get('vector_store', 'metric')
    return SQLiteVectorStore(db_path, metric)
