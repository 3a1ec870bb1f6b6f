"""Media ingestion pipeline for the review platform.

Uploaded images and videos are validated, classified, turned into storage
ready variants and written to S3-compatible object storage; every upload ends
in exactly one persisted media record.
"""
