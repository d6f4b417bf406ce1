"""HTTP middleware."""
from eco_compliance.presentation.middleware.logging import LoggingMiddleware
from eco_compliance.presentation.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
