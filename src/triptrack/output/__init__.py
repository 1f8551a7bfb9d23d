from .sinks import CsvSink, JsonlSink, SampleSinks

__all__ = ["CsvSink", "JsonlSink", "SampleSinks"]
