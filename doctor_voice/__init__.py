"""
Doctor Voice Scribe - Spoken Doctor Instructions to Clinical Summary

A small FastAPI service that transcodes a recorded voice note,
transcribes it and turns the transcript into a structured
English clinical summary for the doctor to review.
"""

__version__ = "1.0.0"
