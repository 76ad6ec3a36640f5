"""Encoders for records and metric samples."""
