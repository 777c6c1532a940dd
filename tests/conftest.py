"""Shared fixtures: deterministic stand-ins for the embedding and classifier services."""

import re

import pytest

from jobrec.criteria import CriteriaExtractor
from jobrec.embeddings import EmbeddingGateway
from jobrec.matching import RecommendationEngine
from jobrec.vector_store import SQLiteVectorStore, VectorStoreAdapter

VOCAB = [
    "engineer", "backend", "lead", "python", "remote",
    "barista", "coffee", "berlin", "data", "analyst", "designer", "ux",
]


class KeywordEmbedder:
    """Counts vocabulary words; the leading 1.0 keeps every vector non-zero."""

    def __init__(self):
        self.calls = []

    def vector(self, text):
        words = re.findall(r"[a-z]+", text.lower())
        return [1.0] + [float(words.count(term)) for term in VOCAB]

    def __call__(self, texts):
        self.calls.append(texts)
        if isinstance(texts, str):
            return self.vector(texts)
        return [self.vector(text) for text in texts]


class LookupClassifier:
    """Answers from a token -> (label, score) table; unknown tokens score low."""

    def __init__(self, table=None):
        self.table = table or {}
        self.calls = []

    def __call__(self, text, labels):
        self.calls.append(text)
        if text in self.table:
            label, score = self.table[text]
            others = [l for l in labels if l != label]
            rest = (1.0 - score) / max(len(others), 1)
            return {"labels": [label] + others, "scores": [score] + [rest] * len(others)}
        return {"labels": list(labels), "scores": [0.3, 0.3, 0.2, 0.2]}


@pytest.fixture
def job_records():
    return [
        {"jobTitle": "Barista", "jobDescription": "Brew coffee and serve customers.",
         "jobType": "Part-time", "company": "Bean There", "location": "Berlin", "salary": "$30k"},
        {"jobTitle": "Backend Engineer", "jobDescription": "Build Python services.",
         "jobType": "Full-time", "company": "Acme", "location": "Remote", "salary": "$140k"},
        {"jobTitle": "Data Analyst", "jobDescription": "Analyze data for the sales team.",
         "jobType": "Full-time", "company": "Numbers Inc", "location": "London"},
        {"jobTitle": "UX Designer", "jobDescription": "Design interfaces for mobile apps.",
         "jobType": "Contract", "company": "Pixel Co", "location": "Berlin"},
        {"jobTitle": "Backend Lead", "jobDescription": "Lead the backend team building Python APIs.",
         "jobType": "Full-time", "company": "Acme", "location": "Remote"},
    ]


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def classifier():
    return LookupClassifier({
        "Engineer": ("job title", 0.9),
        "remote": ("job type", 0.9),
        "Berlin": ("location", 0.95),
        "Tokyo": ("location", 0.95),
        "Acme": ("company", 0.8),
    })


@pytest.fixture
def vector_store(tmp_path):
    store = SQLiteVectorStore(str(tmp_path / "vectors.db"))
    yield store
    store.close()


@pytest.fixture
def store_adapter(vector_store):
    return VectorStoreAdapter(vector_store, "job_collection")


@pytest.fixture
def make_engine(embedder, classifier, store_adapter):
    def factory(records=None, embed_fn=None, classify_fn=None, store=None, overfetch_factor=4):
        return RecommendationEngine(
            gateway=EmbeddingGateway(embed_fn or embedder),
            store=store or store_adapter,
            extractor=CriteriaExtractor(classify_fn or classifier),
            records=records,
            overfetch_factor=overfetch_factor,
        )
    return factory


@pytest.fixture
def engine(make_engine, job_records):
    engine = make_engine(job_records)
    engine.ingest_corpus()
    return engine
