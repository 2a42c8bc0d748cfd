"""
Backend package for the character wiki.

This package provides a FastAPI application that authenticates editors,
stores per-route JSON page documents and serves uploaded images from a
static directory after compressing them.
"""
