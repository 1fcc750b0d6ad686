"""Back-office application for the hospital system.

This package holds the pharmacy billing, purchasing and staff schedule
services together with the models, serializers, views and routes that
expose them over the REST API.
"""
