"""
Corpus normalization for JobRec.

Assigns stable identifiers to job postings and renders each posting into the
canonical text that gets embedded.
"""

import json
import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console

from .errors import EmptyCorpusError

console = Console()

# Source keys tried, in order, for a record's own identifier
ID_KEYS = ("jobId", "id", "_id")

# Field name -> accepted source keys (camelCase first)
FIELD_KEYS = {
    "job_title": ("jobTitle", "job_title", "title"),
    "job_description": ("jobDescription", "job_description", "description"),
    "job_type": ("jobType", "job_type", "type"),
    "company": ("company",),
    "location": ("location",),
    "salary": ("salary",),
}

TEXT_SEPARATOR = ". "


@dataclass(frozen=True)
class Posting:
    """A job posting with its assigned identifier."""
    id: str
    job_title: Optional[str] = None
    job_description: Optional[str] = None
    job_type: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None

    @classmethod
    def from_dict(cls, record: Dict[str, Any], posting_id: str) -> "Posting":
        """Build a posting from a source record, using the given id."""
        fields = {}
        for field_name, keys in FIELD_KEYS.items():
            value = None
            for key in keys:
                if record.get(key) is not None:
                    value = str(record[key])
                    break
            fields[field_name] = value
        return cls(id=posting_id, **fields)

    def to_dict(self) -> Dict[str, Optional[str]]:
        data = asdict(self)
        return {
            "id": data["id"],
            "jobTitle": data["job_title"],
            "jobDescription": data["job_description"],
            "jobType": data["job_type"],
            "company": data["company"],
            "location": data["location"],
            "salary": data["salary"],
        }


def _source_id(record: Dict[str, Any]) -> Optional[str]:
    for key in ID_KEYS:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return None


def assign_ids(records: List[Dict[str, Any]]) -> List[str]:
    """
    Assign a unique identifier to every record.

    Records without an identifier get ``job_<n>`` (1-indexed position).
    An identifier already taken earlier in the same call is suffixed with
    ``_<index>`` (0-based position) until it is unique.

    Args:
        records: Raw posting records in source order

    Returns:
        Identifiers, index aligned with ``records``
    """
    seen = set()
    ids = []

    for index, record in enumerate(records):
        posting_id = _source_id(record) or f"job_{index + 1}"
        while posting_id in seen:
            posting_id = f"{posting_id}_{index}"
        seen.add(posting_id)
        ids.append(posting_id)

    return ids


def canonical_text(posting: Posting) -> str:
    """Render title, description, type and location as one embedding text."""
    parts = [
        posting.job_title,
        posting.job_description,
        posting.job_type,
        posting.location,
    ]
    joined = TEXT_SEPARATOR.join(p for p in parts if p and p.strip())
    return re.sub(r"\s+", " ", joined).strip()


def normalize_corpus(records: List[Dict[str, Any]]) -> Tuple[List[Posting], List[str]]:
    """Return postings with assigned ids and their canonical texts."""
    ids = assign_ids(records)
    postings = [Posting.from_dict(record, posting_id) for record, posting_id in zip(records, ids)]
    texts = [canonical_text(posting) for posting in postings]
    return postings, texts


def load_postings(path: str) -> List[Dict[str, Any]]:
    """
    Load raw posting records from a JSON file.

    The file holds either a list of records or an object with a ``jobs`` or
    ``jobPostings`` list.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Postings file not found: {path}")

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in postings file {path}: {e}")

    if isinstance(data, dict):
        for key in ("jobs", "jobPostings"):
            if isinstance(data.get(key), list):
                data = data[key]
                break

    if not isinstance(data, list):
        raise ValueError(f"Postings file {path} must contain a list of job records")

    records = [record for record in data if isinstance(record, dict)]
    if len(records) != len(data):
        console.print(f"[yellow]Skipped {len(data) - len(records)} non-object entries in {path}[/yellow]")

    if not records:
        raise EmptyCorpusError(f"No job postings found in {path}")

    return records
