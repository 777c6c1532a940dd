"""
Recommendation engine for JobRec - corpus ingestion and similarity ranking.

Ties the corpus normalizer, embedding gateway, vector store, criteria
extractor and attribute filter together into the query and resume
recommendation flows.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Union

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import get_config_manager
from .corpus import Posting, normalize_corpus
from .criteria import CriteriaExtractor, FilterCriteria, filter_postings
from .embeddings import EmbeddingGateway
from .resumes import ResumeProcessor
from .vector_store import VectorStoreAdapter

console = Console()


@dataclass
class MatchResult:
    """A ranked posting. ``score`` is a distance: lower is closer."""
    id: str
    score: float
    job_title: Optional[str] = None
    job_type: Optional[str] = None
    company: Optional[str] = None
    job_description: Optional[str] = None

    @classmethod
    def from_posting(cls, posting: Posting, score: float) -> "MatchResult":
        return cls(
            id=posting.id,
            score=score,
            job_title=posting.job_title,
            job_type=posting.job_type,
            company=posting.company,
            job_description=posting.job_description,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "id": data["id"],
            "score": data["score"],
            "jobTitle": data["job_title"],
            "jobType": data["job_type"],
            "company": data["company"],
            "jobDescription": data["job_description"],
        }


class MatchRanker:
    """Ranks candidate postings by embedding distance to a query."""

    def __init__(self, gateway: EmbeddingGateway, store: VectorStoreAdapter, overfetch_factor: int = 4):
        self.gateway = gateway
        self.store = store
        self.overfetch_factor = max(1, overfetch_factor)

    def rank(self, query: Union[str, Sequence[float]], candidates: List[Posting], top_k: int) -> List[MatchResult]:
        """
        Return up to ``top_k`` candidates nearest to ``query``, nearest first.

        The store is searched over the whole collection, so neighbours are
        over-fetched and narrowed to ``candidates``; the fetch widens until
        ``top_k`` candidates are found or the collection is exhausted.
        Embedding or store failures are logged and produce an empty list.
        """
        if top_k <= 0 or not candidates:
            return []

        try:
            vector = self.gateway.embed(query) if isinstance(query, str) else [float(x) for x in query]
            return self._search(vector, candidates, top_k)
        except Exception as e:
            console.print(f"[red]Error during similarity search: {e}[/red]")
            return []

    def _search(self, vector: List[float], candidates: List[Posting], top_k: int) -> List[MatchResult]:
        by_id = {posting.id: posting for posting in candidates}
        available = self.store.count()
        fetch = min(available, top_k * self.overfetch_factor)

        matches = []
        while fetch > 0:
            neighbours = self.store.query(vector, fetch)
            # Ids missing from the candidates (filtered out or stale) are dropped
            matches = [
                MatchResult.from_posting(by_id[record_id], distance)
                for record_id, distance in neighbours
                if record_id in by_id
            ]
            if len(matches) >= top_k or len(neighbours) < fetch or fetch >= available:
                break
            fetch = min(available, fetch * 2)

        # Equal distances keep the caller's candidate order
        position = {posting.id: index for index, posting in enumerate(candidates)}
        matches.sort(key=lambda match: (match.score, position[match.id]))
        return matches[:top_k]


class RecommendationEngine:
    """High-level interface for ingestion and job recommendations."""

    def __init__(self,
                 gateway: EmbeddingGateway,
                 store: VectorStoreAdapter,
                 extractor: CriteriaExtractor,
                 records: Optional[List[Dict[str, Any]]] = None,
                 overfetch_factor: int = 4,
                 resume_processor: Optional[ResumeProcessor] = None):
        self.gateway = gateway
        self.store = store
        self.extractor = extractor
        self.ranker = MatchRanker(gateway, store, overfetch_factor)
        self.resume_processor = resume_processor or ResumeProcessor()
        self._postings: List[Posting] = []
        self._texts: List[str] = []
        if records is not None:
            self.load_corpus(records)

    @property
    def postings(self) -> List[Posting]:
        return list(self._postings)

    def load_corpus(self, records: List[Dict[str, Any]]) -> List[Posting]:
        """Normalize raw records into the postings used for lookups and ranking."""
        self._postings, self._texts = normalize_corpus(records)
        return self.postings

    def ingest_corpus(self, records: Optional[List[Dict[str, Any]]] = None) -> int:
        """
        Embed and store the corpus unless the collection is already populated.

        Embedding and store errors propagate: ingestion either adds every
        posting or none.

        Returns:
            Number of postings added (0 when skipped)
        """
        if records is not None:
            self.load_corpus(records)

        if not self._postings:
            console.print("[yellow]No job postings to ingest[/yellow]")
            return 0

        existing = self.store.count()
        if existing > 0:
            console.print(f"[green]Collection already populated ({existing} records), skipping ingestion[/green]")
            return 0

        console.print(f"[cyan]Generating embeddings for {len(self._texts)} job postings...[/cyan]")
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
        ) as progress:
            task = progress.add_task("Embedding job postings", total=None)
            embeddings = self.gateway.embed(self._texts)
            progress.update(task, description="Embeddings generated")

        added = self.store.ingest(
            ids=[posting.id for posting in self._postings],
            documents=self._texts,
            embeddings=embeddings,
        )
        if not added:
            return 0

        console.print(f"[green]Stored {len(self._postings)} job postings[/green]")
        return len(self._postings)

    def extract_criteria(self, query: str) -> FilterCriteria:
        return self.extractor.extract(query)

    def recommend_from_query(self, query: str, top_k: int = 3,
                             criteria: Optional[FilterCriteria] = None) -> List[MatchResult]:
        """
        Recommend postings for a free-text query, narrowed by inferred criteria.

        Pass ``criteria`` when they were already extracted for this query to
        skip classifying it again.
        """
        if not self._postings:
            return []

        if criteria is None:
            criteria = self.extract_criteria(query)
        candidates = filter_postings(self._postings, criteria)
        if not candidates:
            if not criteria.is_empty():
                console.print("[dim]No postings match the inferred criteria, ranking the full corpus[/dim]")
            candidates = self._postings

        return self.ranker.rank(query, candidates, top_k)

    def recommend_from_vector(self, vector: Sequence[float], top_k: int = 5) -> List[MatchResult]:
        """Recommend postings nearest to an embedding, across the full corpus."""
        if not self._postings:
            return []
        return self.ranker.rank(vector, self._postings, top_k)

    def recommend_from_resume(self, file_path: str, top_k: int = 5) -> List[MatchResult]:
        """
        Recommend postings for a resume file.

        Invalid or unreadable files raise ValueError; embedding failures
        degrade to an empty list like any other ranking failure.
        """
        if not self._postings:
            return []

        text = self.resume_processor.extract_text(file_path)
        try:
            vector = self.gateway.embed(text)
        except Exception as e:
            console.print(f"[red]Error embedding resume: {e}[/red]")
            return []

        return self.recommend_from_vector(vector, top_k)


def get_recommendation_engine(records: Optional[List[Dict[str, Any]]] = None) -> RecommendationEngine:
    """Get a recommendation engine wired to the configured services."""
    from .criteria import get_criteria_extractor
    from .embeddings import get_embedding_client
    from .vector_store import get_vector_store

    config = get_config_manager()
    gateway = EmbeddingGateway(get_embedding_client())
    store = VectorStoreAdapter(get_vector_store(), config.get('vector_store', 'collection'))

    return RecommendationEngine(
        gateway=gateway,
        store=store,
        extractor=get_criteria_extractor(),
        records=records,
        overfetch_factor=config.get('matching', 'overfetch_factor'),
    )
