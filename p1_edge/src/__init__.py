"""
Edge daemon package for the HomeWizard P1 meter bridge.

Discovers the meter's local HTTP API, reconciles the import/export sensor
accessories, then polls the meter and republishes grid import and export
as sensor characteristics and per-sensor history logs.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
