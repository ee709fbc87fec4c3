"""Repository layer for pivot_tables: record sources and output sinks."""
from .pivot_sink import CsvPivotSink, PivotSink, write_pivot
from .record_source import CsvRecordSource, load_records, records_from_dataframe

__all__ = ["CsvPivotSink", "PivotSink", "write_pivot",
           "CsvRecordSource", "load_records", "records_from_dataframe"]
