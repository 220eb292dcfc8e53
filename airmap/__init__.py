"""
AirMap: pollutant map layer package.

Components:
    - rules: map configuration (conversion factors, domain maxima, colours)
    - ingestion: reading models, unit conversion, GeoJSON feature building
    - classification: quantized colour buckets, filter expressions, layer classifier
    - sync: render-ready state machine, schedulers, map layer controller
"""
