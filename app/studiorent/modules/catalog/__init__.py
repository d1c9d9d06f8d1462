"""Instrument and room catalog."""
