"""CSV ingestion: adapters, adapter selection and the commit pipeline."""

from .csv_source import EmptyUploadError, MalformedUploadError, ParsedCsv, parse_csv
from .pipeline import ImportReport, IngestionPipeline
from .request import CommitRequest
from .router import AdapterRegistry, detect_adapter

__all__ = [
    "AdapterRegistry",
    "CommitRequest",
    "EmptyUploadError",
    "ImportReport",
    "IngestionPipeline",
    "MalformedUploadError",
    "ParsedCsv",
    "detect_adapter",
    "parse_csv",
]
