# Infrastructure Package
from .records import FileRecordStore, RecordFileError

__all__ = ["FileRecordStore", "RecordFileError"]
