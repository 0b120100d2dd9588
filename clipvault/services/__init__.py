"""Services layer for ClipVault.

Services implement the client-side upload workflow.
Organized by feature:
- media: ffmpeg-backed thumbnail extraction and compression
- uploader: authorization, object transfer, finalization and batch orchestration
"""
