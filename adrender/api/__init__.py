"""
HTTP API
========

FastAPI boundary for previews, single renders and batch exports.
"""
