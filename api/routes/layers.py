"""
Layer routes: classify a batch of readings into a renderable markers layer.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from airmap.classification.classifier import classify_parameter
from airmap.classification.scale import ScaleConfigurationError
from airmap.ingestion.models import group_by_parameter, parse_readings
from airmap.rules.map_config import MapConfig, UnknownParameterError, get_map_config

logger = logging.getLogger(__name__)

router = APIRouter()


class LayerRequest(BaseModel):
    readings: List[Dict[str, Any]] = Field(default_factory=list)


@router.get("/config")
def layer_config(config: MapConfig = Depends(get_map_config)):
    """Return the colour scale, domain maxima, conversion factors and staleness threshold."""
    return config.to_dict()


@router.post("/{parameter}")
def classify_layer(
    parameter: str,
    body: LayerRequest,
    config: MapConfig = Depends(get_map_config),
):
    """
    Classify the posted readings for one parameter.
    Records for other parameters are ignored; records without a location
    or numeric value are skipped.
    """
    readings = group_by_parameter(parse_readings(body.readings, parameter=parameter))
    try:
        classification = classify_parameter(parameter, readings, config)
    except UnknownParameterError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ScaleConfigurationError as e:
        logger.error("Scale configuration error for %s: %s", parameter, e)
        raise HTTPException(status_code=422, detail=str(e))
    return classification.to_dict()
