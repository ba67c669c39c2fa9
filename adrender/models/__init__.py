"""
Data Models
===========

Pydantic models for the dynamic value contract, layer summaries, render
options/results, export requests and results.
"""
