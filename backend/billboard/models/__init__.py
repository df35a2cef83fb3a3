"""Pydantic models for the documents stored in MongoDB."""
