"""
FastAPI RESTful API for the Minimal Books service.

This module provides a REST API for:
- Book creation, lookup, update, search and pagination
- JWT bearer token issuance
- Per-route bearer authentication
"""
