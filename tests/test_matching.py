import pytest

from jobrec.corpus import normalize_corpus
from jobrec.criteria import FilterCriteria
from jobrec.embeddings import EmbeddingGateway
from jobrec.errors import CollaboratorUnavailable
from jobrec.matching import MatchRanker, MatchResult


def _unavailable(*args, **kwargs):
    raise CollaboratorUnavailable("service down")


class TestIngestion:

    def test_ingests_every_posting(self, make_engine, job_records, store_adapter):
        engine = make_engine(job_records)

        assert engine.ingest_corpus() == 5
        assert store_adapter.count() == 5

    def test_second_ingest_is_a_no_op(self, make_engine, job_records, store_adapter, embedder):
        engine = make_engine(job_records)
        engine.ingest_corpus()

        assert engine.ingest_corpus() == 0
        assert store_adapter.count() == 5
        # One batch call; the skipped run never embeds
        assert len(embedder.calls) == 1

    def test_embedding_failure_is_fatal_and_stores_nothing(self, make_engine, job_records, store_adapter):
        engine = make_engine(job_records, embed_fn=_unavailable)

        with pytest.raises(CollaboratorUnavailable):
            engine.ingest_corpus()
        assert store_adapter.count() == 0

    def test_empty_corpus_ingests_nothing(self, make_engine, store_adapter):
        assert make_engine([]).ingest_corpus() == 0
        assert store_adapter.count() == 0

    def test_records_can_be_passed_at_ingest_time(self, make_engine, job_records):
        engine = make_engine()
        assert engine.ingest_corpus(job_records) == 5
        assert len(engine.postings) == 5


class TestRecommendFromQuery:

    def test_engineer_scenario(self, engine):
        results = engine.recommend_from_query("Engineer")

        assert 0 < len(results) <= 3
        assert results[0].job_title in ("Backend Engineer", "Backend Lead")

    def test_results_sorted_by_ascending_distance(self, make_engine, job_records):
        engine = make_engine(job_records)
        engine.ingest_corpus()

        results = engine.recommend_from_query("python backend coffee", top_k=5)

        scores = [r.score for r in results]
        assert len(results) == 5
        assert scores == sorted(scores)

    def test_criteria_narrow_candidates(self, engine):
        results = engine.recommend_from_query("Berlin", top_k=5)
        assert {r.job_title for r in results} == {"Barista", "UX Designer"}

    def test_precomputed_criteria_skip_classification(self, engine, classifier):
        results = engine.recommend_from_query("Berlin", top_k=5, criteria=FilterCriteria(location="Remote"))

        assert classifier.calls == []
        assert {r.job_title for r in results} == {"Backend Engineer", "Backend Lead"}

    def test_empty_filter_falls_back_to_full_corpus(self, engine):
        results = engine.recommend_from_query("Tokyo", top_k=3)
        assert len(results) == 3

    def test_result_shape(self, engine):
        result = engine.recommend_from_query("Engineer")[0]

        assert isinstance(result, MatchResult)
        assert result.id == "job_2"
        assert result.company == "Acme"
        assert result.job_type == "Full-time"
        assert result.job_description == "Build Python services."
        assert set(result.to_dict()) == {"id", "score", "jobTitle", "jobType", "company", "jobDescription"}

    def test_embedding_failure_degrades_to_no_results(self, make_engine, job_records, engine):
        broken = make_engine(job_records, embed_fn=_unavailable)
        assert broken.recommend_from_query("Engineer") == []

    def test_empty_corpus_returns_no_results(self, make_engine):
        assert make_engine([]).recommend_from_query("Engineer") == []


class TestRecommendFromVector:

    def test_two_documents_top_five(self, make_engine, job_records):
        engine = make_engine(job_records[:2])
        engine.ingest_corpus()

        results = engine.recommend_from_vector([1.0] * 13, top_k=5)

        assert len(results) == 2

    def test_stale_store_ids_are_dropped(self, make_engine, job_records, embedder):
        make_engine(job_records).ingest_corpus()

        # Same store, but the corpus lost its last posting
        engine = make_engine(job_records[:4])
        results = engine.recommend_from_vector(embedder.vector("backend lead"), top_k=5)

        assert len(results) == 4
        assert all(r is not None for r in results)
        assert "job_5" not in [r.id for r in results]

    def test_store_failure_degrades_to_no_results(self, make_engine, job_records, store_adapter, monkeypatch):
        engine = make_engine(job_records)
        engine.ingest_corpus()
        monkeypatch.setattr(store_adapter, "query", _unavailable)

        assert engine.recommend_from_vector([1.0] * 13) == []


class TestMatchRanker:

    def test_overfetch_widens_until_candidates_found(self, job_records, embedder, store_adapter, make_engine):
        make_engine(job_records).ingest_corpus()
        postings, _ = normalize_corpus(job_records)
        ranker = MatchRanker(EmbeddingGateway(embedder), store_adapter, overfetch_factor=1)

        # The nearest neighbour of "engineer" is Backend Engineer, which is not a candidate
        results = ranker.rank("engineer", [postings[4]], top_k=1)

        assert [r.job_title for r in results] == ["Backend Lead"]

    def test_accepts_precomputed_vector(self, job_records, embedder, store_adapter, make_engine):
        make_engine(job_records).ingest_corpus()
        postings, _ = normalize_corpus(job_records)
        ranker = MatchRanker(EmbeddingGateway(_unavailable), store_adapter)

        results = ranker.rank(embedder.vector("barista coffee"), postings, top_k=2)

        assert results[0].job_title == "Barista"

    def test_zero_top_k(self, job_records, embedder, store_adapter):
        postings, _ = normalize_corpus(job_records)
        ranker = MatchRanker(EmbeddingGateway(embedder), store_adapter)
        assert ranker.rank("engineer", postings, top_k=0) == []

    def test_equal_distances_keep_candidate_order(self, make_engine, embedder, store_adapter):
        records = [
            {"jobId": "first", "jobTitle": "Barista", "jobDescription": "Coffee"},
            {"jobId": "second", "jobTitle": "Barista", "jobDescription": "Coffee"},
        ]
        make_engine(records).ingest_corpus()
        postings, _ = normalize_corpus(list(reversed(records)))
        ranker = MatchRanker(EmbeddingGateway(embedder), store_adapter)

        results = ranker.rank("barista coffee", postings, top_k=2)

        assert results[0].score == results[1].score
        assert [r.id for r in results] == ["second", "first"]


class TestRecommendFromResume:

    def test_text_resume(self, engine, tmp_path):
        resume = tmp_path / "resume.txt"
        resume.write_text("Experienced backend engineer.\n\nPython, remote work.")

        results = engine.recommend_from_resume(str(resume), top_k=2)

        assert len(results) == 2
        assert results[0].job_title == "Backend Engineer"

    def test_unsupported_file_raises(self, engine, tmp_path):
        resume = tmp_path / "resume.png"
        resume.write_bytes(b"\x89PNG")

        with pytest.raises(ValueError):
            engine.recommend_from_resume(str(resume))
