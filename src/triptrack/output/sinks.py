from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import IO, Any, Dict, Optional

from triptrack.utils.config import resolve_path
from triptrack.utils.types import FixSample

FIX_SAMPLE_FIELDS = [f.name for f in fields(FixSample)]


def _ensure_parent(path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


@dataclass
class CsvSink:
    path: str
    _f: Optional[IO[str]] = None
    _w: Optional[csv.DictWriter] = None

    def open(self) -> None:
        _ensure_parent(self.path)
        self._f = open(self.path, "w", newline="", encoding="utf-8")
        self._w = csv.DictWriter(self._f, fieldnames=FIX_SAMPLE_FIELDS)
        self._w.writeheader()

    def write(self, s: FixSample) -> None:
        if self._w is None:
            raise RuntimeError("CsvSink not opened")
        row: Dict[str, Any] = asdict(s)
        row["is_dwelling"] = int(s.is_dwelling)
        row["is_moving"] = int(s.is_moving)
        self._w.writerow(row)

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
        self._f = None
        self._w = None


@dataclass
class JsonlSink:
    path: str
    _f: Optional[IO[str]] = None

    def open(self) -> None:
        _ensure_parent(self.path)
        self._f = open(self.path, "w", encoding="utf-8")

    def write(self, s: FixSample) -> None:
        if self._f is None:
            raise RuntimeError("JsonlSink not opened")
        self._f.write(json.dumps(asdict(s), ensure_ascii=False) + "\n")

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
        self._f = None


@dataclass
class SampleSinks:
    csv: Optional[CsvSink] = None
    jsonl: Optional[JsonlSink] = None

    @staticmethod
    def from_dict(d: Dict[str, Any], base_dir: Optional[str] = None) -> "SampleSinks":
        csv_cfg = d.get("csv", {}) or {}
        jsonl_cfg = d.get("jsonl", {}) or {}
        return SampleSinks(
            csv=CsvSink(resolve_path(str(csv_cfg.get("path")), base_dir)) if bool(csv_cfg.get("enabled", False)) else None,
            jsonl=JsonlSink(resolve_path(str(jsonl_cfg.get("path")), base_dir)) if bool(jsonl_cfg.get("enabled", False)) else None,
        )

    def open(self) -> None:
        if self.csv is not None:
            self.csv.open()
        if self.jsonl is not None:
            self.jsonl.open()

    def write(self, s: FixSample) -> None:
        if self.csv is not None:
            self.csv.write(s)
        if self.jsonl is not None:
            self.jsonl.write(s)

    def close(self) -> None:
        if self.csv is not None:
            self.csv.close()
        if self.jsonl is not None:
            self.jsonl.close()
