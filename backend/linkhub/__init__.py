"""Application package for the linkhub bookmark backend.

This package exposes the service, repository and model modules used by
the FastAPI application, plus a small HTTP client for callers that reach
the API over the network. Individual modules contain the concrete
implementations and documentation.
"""
