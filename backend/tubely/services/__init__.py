"""
Services module for the Tubely backend.

The upload-and-publish pipeline, one stage per module:

- upload_intake: bounded multipart parsing and declared-type validation
- staging: scratch-file buffering of video payloads
- storage_service: local disk and object store committers
- video_service: video record reads and writes in MongoDB
- upload_service: orchestration of key generation, commit and metadata sync
"""
