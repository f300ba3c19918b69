"""FastAPI service for the food delivery application.

This package wires the HTTP request pipeline: security and rate-limit
policies, CORS, body decoding, the MongoDB connection, the domain route
groups, health check and error handling.
"""

__version__ = "1.0.0"
