"""
Service modules for the delivery worker.

This package contains configuration loading and the AWS-facing helpers
(Secrets Manager for the API key, SQS for producers).
"""

__all__ = ['config', 'secrets', 'queue']
