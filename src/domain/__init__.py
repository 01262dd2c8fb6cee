"""
Domain layer for email delivery.

This layer contains:
- Data models (inbound message, outbound request, delivery result)
- Business logic (validation, classification, single-attempt delivery)
"""
