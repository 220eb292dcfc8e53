"""
AirMap batch entry point

Classifies a saved batch of latest readings for one parameter and writes the
layer document (GeoJSON, buckets, filters, layer specs, legend) as JSON.

Input is either a list of reading records or a mapping of
parameter -> list of records:

    python -m airmap.main latest.json --parameter no2 --output layer.json
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from airmap.classification.classifier import classify_parameter
from airmap.ingestion.models import Reading, group_by_parameter, parse_readings
from airmap.rules.map_config import MapConfigError, load_map_config

logger = logging.getLogger("airmap.main")


def load_batch(path: str) -> Dict[str, List[Reading]]:
    """Read a JSON batch file into a parameter -> readings mapping."""
    with open(path, "r") as f:
        data = json.load(f)

    if isinstance(data, dict):
        # The mapping key is only a default; a record naming its own
        # parameter is filed under that parameter.
        readings: List[Reading] = []
        for param, records in data.items():
            readings.extend(parse_readings(records, parameter=param))
        return group_by_parameter(readings)
    return group_by_parameter(parse_readings(data))


def build_layer_document(path: str, parameter: str, config_path: Optional[str] = None) -> Dict[str, Any]:
    config = load_map_config(config_path)
    batch = load_batch(path)
    logger.info("Loaded %d readings across %d parameters from %s",
                sum(len(v) for v in batch.values()), len(batch), path)
    return classify_parameter(parameter, batch, config).to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [AIRMAP] %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )

    parser = argparse.ArgumentParser(description="Classify readings into a map layer document.")
    parser.add_argument("readings", help="JSON file with reading records")
    parser.add_argument("--parameter", default="pm25", help="parameter to classify (default: pm25)")
    parser.add_argument("--config", default=None, help="map config JSON (default: bundled config)")
    parser.add_argument("--output", default=None, help="write the document here instead of stdout")
    args = parser.parse_args(argv)

    try:
        document = build_layer_document(args.readings, args.parameter, args.config)
    except MapConfigError as exc:
        logger.error("Cannot classify parameter=%s: %s", args.parameter, exc)
        return 2

    payload = json.dumps(document, indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(payload)
        logger.info("Layer document written to %s", args.output)
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
