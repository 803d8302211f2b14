"""securetrace.forensics

The security record: hash-linked log, risk rubric, summaries.
"""

from .chain import ForensicLogChain, verify_entries
from .scoring import FALLBACK_SUMMARY, compute_risk_analysis
from .summarizer import HttpSummarizer, NullSummarizer, Summarizer, analyze_with_summary

__all__ = [
    "FALLBACK_SUMMARY",
    "ForensicLogChain",
    "HttpSummarizer",
    "NullSummarizer",
    "Summarizer",
    "analyze_with_summary",
    "compute_risk_analysis",
    "verify_entries",
]
