"""JSON File History Source.

Reads raw third-party health-history payloads from a directory holding one
``<patientId>.json`` file per patient.

Security Impact:
    - Patient ids are checked before they are turned into a path, so a
      crafted id cannot escape the base directory
    - Files above the configured size are refused before being read
    - Decoding errors surface as UnsupportedSourceError, never as partial data

Architecture:
    - Implements HistorySourcePort
    - Returns the decoded payload untouched; validation is the parser's job
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Union

from history_reconciler.domain.ports import HistorySourcePort, SourceNotFoundError, UnsupportedSourceError
from history_reconciler.infrastructure.settings import DEFAULT_MAX_PAYLOAD_SIZE

logger = logging.getLogger(__name__)

_SAFE_PATIENT_ID = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")


class JSONFileHistorySource(HistorySourcePort):
    """Source adapter over a directory of JSON payload files.

    Example Usage:
        ```python
        source = JSONFileHistorySource("data/")
        raw = source.fetch("P001")       # reads data/P001.json
        raw = source.load("export.json") # reads an explicit file
        ```
    """

    def __init__(self, base_dir: Union[str, Path], max_payload_size: int = DEFAULT_MAX_PAYLOAD_SIZE):
        """Initialize the source.

        Parameters:
            base_dir: Directory containing ``<patientId>.json`` files
            max_payload_size: Largest file accepted, in bytes
        """
        self.base_dir = Path(base_dir)
        self.max_payload_size = max_payload_size
        self.adapter_name = "json_file_source"

    def can_ingest(self, source: str) -> bool:
        """Check if this adapter can handle the given source.

        Returns:
            bool: True if source is a JSON file path
        """
        if not source:
            return False
        return Path(source).suffix.lower() == ".json"

    def fetch(self, patient_id: str) -> Any:
        """Fetch the raw payload for a patient from ``<base_dir>/<patientId>.json``.

        Raises:
            SourceNotFoundError: If the id is unsafe or no file exists
            UnsupportedSourceError: If the file is too large or not valid JSON
        """
        if not isinstance(patient_id, str) or not _SAFE_PATIENT_ID.match(patient_id):
            raise SourceNotFoundError(
                f"Invalid patient id for file source: {patient_id!r}",
                source=str(patient_id),
            )
        return self.load(self.base_dir / f"{patient_id}.json")

    def load(self, path: Union[str, Path]) -> Any:
        """Load and decode one payload file.

        Parameters:
            path: Path to a JSON file

        Returns:
            The decoded JSON document

        Raises:
            SourceNotFoundError: If the file doesn't exist or can't be read
            UnsupportedSourceError: If the path is not a .json file, is too
                large or is not valid JSON
        """
        source_path = Path(path)
        source = str(source_path)

        if not self.can_ingest(source):
            raise UnsupportedSourceError(
                f"Not a JSON source: {source}",
                source=source,
                adapter=self.adapter_name,
            )

        if not source_path.is_file():
            raise SourceNotFoundError(f"JSON source not found: {source}", source=source)

        file_size = source_path.stat().st_size
        if file_size > self.max_payload_size:
            raise UnsupportedSourceError(
                f"JSON source too large: {source} ({file_size} bytes, limit {self.max_payload_size})",
                source=source,
                adapter=self.adapter_name,
            )

        try:
            with open(source_path, 'r', encoding='utf-8') as f:
                raw_data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise UnsupportedSourceError(
                f"Invalid JSON format in {source}: {str(e)}",
                source=source,
                adapter=self.adapter_name,
            ) from e
        except OSError as e:
            raise SourceNotFoundError(f"Cannot read JSON source {source}: {str(e)}", source=source) from e

        logger.debug(f"Loaded JSON payload from {source} ({file_size} bytes)")
        return raw_data
