"""Triage application for the patient intake service.

This package contains the queue models, the admission and completion
services that keep each hospital's queue densely ordered by severity,
and the API routes that expose them.
"""
