import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from clinicdesk.core.logger import logger

class LogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        message = (
            f"Method: {request.method} | "
            f"Path: {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Duration: {process_time:.4f}s"
        )
        if response.status_code >= 500:
            logger.warning(message)
        else:
            logger.info(message)

        return response
