"""
app/parsers package marker.
"""

from app.parsers.csv_tokenizer import CSVTokenizeError, CSVTokenizer, RowLimitExceededError

__all__ = [
    "CSVTokenizeError",
    "CSVTokenizer",
    "RowLimitExceededError",
]
