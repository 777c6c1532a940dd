"""
Exception types raised by the JobRec pipeline.
"""


class JobRecError(Exception):
    """Base class for JobRec errors."""


class CollaboratorUnavailable(JobRecError):
    """An embedding, classifier or vector store call failed or timed out."""


class EmptyCorpusError(JobRecError):
    """There are no postings to ingest or query against."""
