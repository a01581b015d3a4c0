"""Notespace — ingest heterogeneous sources into spaces and search them semantically."""
