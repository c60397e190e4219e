"""
FastAPI REST API Layer for ssml-tts.

This package defines all HTTP endpoints:
    - routes.py: /tts/chunked, /tts/long/*, /health
    - schemas.py: Request Pydantic models
    - body.py: JSON body parsing with optional repair
    - dependencies.py: FastAPI dependency injection
"""
