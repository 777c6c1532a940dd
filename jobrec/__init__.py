"""
JobRec - Semantic job recommendation from free-text queries and resumes.

A local command-line tool that:
- Ingests a corpus of job postings into a persistent vector store
- Narrows queries with attribute filters inferred by zero-shot classification
- Ranks postings by embedding distance to a query or a resume
"""

__version__ = "0.1.0"
