"""
Criteria extraction and attribute filtering for JobRec.

Each query token is classified against a fixed label set with a zero-shot
classifier. Confident tokens become filter criteria, and the criteria narrow
the posting corpus by case-insensitive substring matching.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from huggingface_hub import InferenceClient
from rich.console import Console

from .config import get_config_manager
from .corpus import Posting
from .errors import CollaboratorUnavailable

console = Console()

CRITERIA_LABELS = ["location", "job title", "company", "job type"]

# Classifier label -> FilterCriteria field
LABEL_FIELDS = {
    "location": "location",
    "job title": "job_title",
    "company": "company",
    "job type": "job_type",
}

ACCEPTANCE_THRESHOLD = 0.5

ClassifyFunction = Callable[[str, List[str]], Dict[str, List[Any]]]


@dataclass(frozen=True)
class FilterCriteria:
    """Attribute constraints inferred from a query. None means unconstrained."""
    location: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    job_type: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


class HuggingFaceZeroShotClassifier:
    """Zero-shot classifier backed by the Hugging Face Inference API."""

    def __init__(self,
                 model: Optional[str] = None,
                 token: Optional[str] = None,
                 timeout: Optional[float] = None):
        config = get_config_manager()

        if model is None:
            model = config.get('classifier', 'model')
        if token is None:
            token = config.get('classifier', 'token') or None
        if timeout is None:
            timeout = config.get('classifier', 'timeout')
        self.model = model
        self.client = InferenceClient(model=model, token=token, timeout=timeout)

    def __call__(self, text: str, labels: List[str]) -> Dict[str, List[Any]]:
        return self.classify(text, labels)

    def classify(self, text: str, labels: List[str]) -> Dict[str, List[Any]]:
        """Return labels and scores ordered by descending score."""
        try:
            output = self.client.zero_shot_classification(text, labels, multi_label=False)
        except Exception as e:
            raise CollaboratorUnavailable(f"Zero-shot classification failed for '{text}': {e}") from e

        ranked = sorted(output, key=lambda element: element.score, reverse=True)
        return {
            "labels": [element.label for element in ranked],
            "scores": [float(element.score) for element in ranked],
        }


class CriteriaExtractor:
    """Builds FilterCriteria from a free-text query, one token at a time."""

    def __init__(self, classify_fn: ClassifyFunction, max_workers: int = 1):
        self.classify_fn = classify_fn
        self.max_workers = max(1, max_workers)

    def extract(self, query: str) -> FilterCriteria:
        """
        Classify every token of ``query`` and keep the first confident token
        per field.

        Multi-word names only ever bind their first qualifying token, since
        tokens are classified without context.
        """
        tokens = str(query).split()
        if not tokens:
            return FilterCriteria()

        if self.max_workers > 1 and len(tokens) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tokens))) as executor:
                # map() yields results in token order
                classified = list(executor.map(self._top_label, tokens))
        else:
            classified = [self._top_label(token) for token in tokens]

        return self._accumulate(zip(tokens, classified))

    def _top_label(self, token: str) -> Tuple[Optional[str], float]:
        try:
            result = self.classify_fn(token, CRITERIA_LABELS)
        except Exception as e:
            console.print(f"[yellow]Could not classify '{token}', ignoring it: {e}[/yellow]")
            return None, 0.0

        labels = result.get("labels") or []
        scores = result.get("scores") or []
        if not labels or not scores:
            return None, 0.0
        return str(labels[0]), float(scores[0])

    @staticmethod
    def _accumulate(classified) -> FilterCriteria:
        criteria = FilterCriteria()
        for token, (label, score) in classified:
            if score <= ACCEPTANCE_THRESHOLD or label is None:
                continue
            field_name = LABEL_FIELDS.get(label.lower())
            if field_name is None or getattr(criteria, field_name) is not None:
                continue
            criteria = replace(criteria, **{field_name: token})
        return criteria


def _contains(value: Optional[str], needle: str) -> bool:
    return value is not None and needle.casefold() in value.casefold()


def filter_postings(postings: List[Posting], criteria: FilterCriteria) -> List[Posting]:
    """Keep postings whose attributes contain every set criterion."""
    constraints = [(name, value) for name, value in criteria.to_dict().items() if value is not None]
    if not constraints:
        return list(postings)

    return [
        posting for posting in postings
        if all(_contains(getattr(posting, name), value) for name, value in constraints)
    ]


def get_criteria_extractor(classify_fn: Optional[ClassifyFunction] = None,
                           max_workers: Optional[int] = None) -> CriteriaExtractor:
    """Get a criteria extractor using the configured classifier."""
    config = get_config_manager()
    if classify_fn is None:
        classify_fn = HuggingFaceZeroShotClassifier()
    if max_workers is None:
        max_workers = config.get('classifier', 'max_workers')
    return CriteriaExtractor(classify_fn, max_workers=max_workers)
