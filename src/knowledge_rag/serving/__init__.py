"""
Serving — FastAPI application for ingestion and retrieval.

This module exposes the pipeline over HTTP so the chat front-end and
admin tools can upload documents and fetch context.
"""
