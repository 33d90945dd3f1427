"""
Core infrastructure for the Tubely backend.

- auth: bearer token issuing and validation (local HS256 JWT)
- database: MongoDB async client with Motor driver and connection pooling
- errors: pipeline error taxonomy and its HTTP status mapping
- storage: S3-compatible object storage client for AWS S3 or MinIO
"""
