"""
Stock Search API
FastAPI application exposing search, suggestions and status endpoints.
"""
