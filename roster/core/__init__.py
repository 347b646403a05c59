"""Core export logic: wire models, sinks and the pagination driver."""
from .models import UserRecord, PageRequest, Page, ExportResult, PAGE_CONTENT_TYPE, decode_users
from .sinks import EmissionSink, DirectorySink, StreamSink
from .pagination import PaginationDriver, run_export, DEFAULT_PAGE_SIZE

__all__ = [
    "UserRecord",
    "PageRequest",
    "Page",
    "ExportResult",
    "PAGE_CONTENT_TYPE",
    "decode_users",
    "EmissionSink",
    "DirectorySink",
    "StreamSink",
    "PaginationDriver",
    "run_export",
    "DEFAULT_PAGE_SIZE",
]
