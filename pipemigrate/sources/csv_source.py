"""CSV/JSON file-based source."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from ..errors import ConfigurationError
from .base import BaseSource

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".json", ".jsonl")
SNIFF_DELIMITERS = ",;\t|"


class CSVSource(BaseSource):
    """
    Source reading a CSV, JSON or JSON Lines export.

    Supports:
    - Column mapping
    - Delimiter sniffing
    - Optional numeric type inference
    - JSON documents wrapping their records in a data/records/items key

    The file is reopened on every iteration and read one record at a time.
    """

    def __init__(
        self,
        ids: Dict[str, str],
        file_path: str,
        column_mapping: Optional[Dict[str, str]] = None,
        encoding: str = "utf-8",
        delimiter: Optional[str] = None,
        infer_types: bool = False,
    ):
        """
        Initialize the CSV source.

        Args:
            ids: Ordered source id field -> type declaration
            file_path: Path of the export file
            column_mapping: Optional mapping of file columns to property names
            encoding: File encoding
            delimiter: CSV delimiter; sniffed from the first lines when omitted
            infer_types: Convert numeric CSV values to int/float
        """
        super().__init__(ids)
        self.file_path = Path(file_path)
        self.column_mapping = column_mapping or {}
        self.encoding = encoding
        self.delimiter = delimiter
        self.infer_types = infer_types

    def records(self) -> Iterator[Dict[str, Any]]:
        if not self.file_path.exists():
            raise ConfigurationError(f"Source file not found: {self.file_path}")

        suffix = self.file_path.suffix.lower()
        logger.info(f"Reading source file: {self.file_path}")
        if suffix == ".json":
            yield from self._read_json()
        elif suffix == ".jsonl":
            yield from self._read_jsonl()
        else:
            yield from self._read_csv()

    def _read_csv(self) -> Iterator[Dict[str, Any]]:
        with open(self.file_path, "r", encoding=self.encoding, newline="") as f:
            delimiter = self.delimiter
            if delimiter is None:
                sample = f.read(8192)
                f.seek(0)
                try:
                    delimiter = csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
                except csv.Error:
                    delimiter = ","

            for row in csv.DictReader(f, delimiter=delimiter):
                record = self._map_columns(
                    {column: self._clean(value) for column, value in row.items() if column is not None}
                )
                # Skip blank lines
                if all(value is None for value in record.values()):
                    continue
                yield record

    def _read_json(self) -> Iterator[Dict[str, Any]]:
        with open(self.file_path, "r", encoding=self.encoding) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {self.file_path}: {e}") from e

        if isinstance(data, dict):
            for key in ("data", "records", "items", "results"):
                if isinstance(data.get(key), list):
                    data = data[key]
                    break
            else:
                data = [data]

        if not isinstance(data, list):
            raise ConfigurationError(f"Unexpected JSON structure in {self.file_path}")

        for item in data:
            yield self._map_columns(item)

    def _read_jsonl(self) -> Iterator[Dict[str, Any]]:
        with open(self.file_path, "r", encoding=self.encoding) as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    item = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid JSON on line {line_num} of {self.file_path}: {e}") from e
                yield self._map_columns(item)

    def _map_columns(self, item: Dict[str, Any]) -> Dict[str, Any]:
        if not self.column_mapping:
            return dict(item)
        return {self.column_mapping.get(key, key): value for key, value in item.items()}

    def _clean(self, value: Optional[str]) -> Union[str, int, float, None]:
        """Strip a CSV value, turning blanks into None."""
        if value is None:
            return None
        value = value.strip()
        if value == "":
            return None
        if not self.infer_types:
            return value

        try:
            if "." not in value:
                return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    def validate_source(self) -> List[str]:
        """Validate the file source configuration."""
        errors = super().validate_source()

        if not self.file_path.exists():
            errors.append(f"File not found: {self.file_path}")
        elif self.file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
            errors.append(f"Unsupported file format: {self.file_path.suffix}")

        return errors
