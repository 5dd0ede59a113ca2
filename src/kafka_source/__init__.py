"""Kafka source connector with watermark-bounded, resumable reads."""

__version__ = "0.1.0"
