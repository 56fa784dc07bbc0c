"""Bulk track ingestion.

Contains:
- validator: audio type classification of candidate files
- models: per-track state machine and the batch container
- orchestrator: the validate/extract/upload/commit pipeline
- status: derived counts, run outcome and summary text
- registry: in-memory batches for the HTTP surface
- cli: one-shot ingestion of a local directory
"""
