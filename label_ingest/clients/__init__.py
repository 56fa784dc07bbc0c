"""HTTP clients for the services the ingestion pipeline depends on.

Contains:
- metadata: per-file tag extraction
- credentials: batched presigned upload URL issuance
- storage: per-file byte upload to a presigned URL
- commit: batched track record creation
"""
