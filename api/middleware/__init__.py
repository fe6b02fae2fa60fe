from .logging import LoggingMiddleware
from .request_id import RequestIDMiddleware, bind_principal, client_ip_of

__all__ = ["LoggingMiddleware", "RequestIDMiddleware", "bind_principal", "client_ip_of"]
