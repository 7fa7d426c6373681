# src/scenario_player/monitoring/exporter.py
"""Export of scenario values and results to files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging
from datetime import datetime

import aiofiles
import yaml

from ..scenarios.results import ResultSet

logger = logging.getLogger(__name__)


class ValuesExporter:
    """Writes the extracted values of every scenario as a JSON list."""

    def __init__(self, output_path: Union[str, Path], indent: int = 4):
        """
        Initialize values exporter.

        Args:
            output_path: Path to output JSON file
            indent: JSON indentation
        """
        self.output_path = Path(output_path)
        self.indent = indent

    def render(self, results: ResultSet) -> str:
        return json.dumps(results.values(), indent=self.indent, default=str)

    async def export(self, results: ResultSet) -> Path:
        """Write values of all scenarios, in input order."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(self.output_path, 'w') as f:
                await f.write(self.render(results))
        except OSError as e:
            logger.error(f"Failed to write values to {self.output_path}: {e}")
            raise

        logger.info(f"Exported values of {len(results)} scenarios to {self.output_path}")
        return self.output_path


class ResultsExporter:
    """Writes a YAML summary of a batch of results."""

    def __init__(self, output_path: Union[str, Path]):
        self.output_path = Path(output_path)

    def build_summary(self,
                      results: ResultSet,
                      latency: Optional[Dict[str, Dict[str, float]]] = None) -> Dict[str, Any]:
        """Summary document for a batch."""
        summary = {
            "generated_at": datetime.now().isoformat(),
            **results.to_dict(),
        }
        if latency:
            summary["latency_ms"] = latency
        return summary

    async def export(self,
                     results: ResultSet,
                     latency: Optional[Dict[str, Dict[str, float]]] = None) -> Path:
        """Write the summary YAML file."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        document = yaml.safe_dump(self.build_summary(results, latency),
                                  default_flow_style=False, sort_keys=False)

        async with aiofiles.open(self.output_path, 'w') as f:
            await f.write(document)

        logger.info(f"Exported results summary to {self.output_path}")
        return self.output_path
