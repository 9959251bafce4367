import time
import uuid

from fastapi import Request

from logger import get_logger

logger = get_logger(__name__)


async def add_request_id_and_process_time(request: Request, call_next):
    """Tag every request with an id and report how long it took."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    process_time = time.perf_counter() - start
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{process_time:.4f}"
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({process_time * 1000:.1f}ms)"
    )
    return response
