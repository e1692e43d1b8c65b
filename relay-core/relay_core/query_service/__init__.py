"""
Query Service
=============
Client for the backend that answers user questions.
"""

from .client import QUERY_PATH, QueryServiceClient, build_query_url, extract_answer

__all__ = [
    "QUERY_PATH",
    "QueryServiceClient",
    "build_query_url",
    "extract_answer",
]
