"""Chainlink node exporter rendering InfluxDB line protocol."""

__version__ = "1.2.0"
