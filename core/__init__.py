"""Core application for the tourism survey platform.

This package contains the models, forms, JSON views, middleware and
services (analytics, classifier client, dashboard cache) that make up the
survey intake and the admin analytics API.
"""
