"""Application package for the radio program catalog backend.

This package exposes the service, repository, storage and model modules
used by the FastAPI application. Individual modules contain the concrete
implementations and documentation.
"""
