import time
import logging
from fastapi import Request

logger = logging.getLogger("access")

# Polled by dashboards; logged at DEBUG to keep the access log readable
QUIET_PATHS = {"/", "/escalations/scheduler/status"}


async def request_logging_middleware(request: Request, call_next):
    start_time = time.perf_counter()

    response = await call_next(request)

    process_time = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time-Ms"] = str(process_time)

    # Set by get_current_user on authenticated routes
    user = getattr(request.state, "user", None)

    level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
    logger.log(
        level,
        "",
        extra={
            "client_addr": request.client.host if request.client else "unknown",
            "user_id": user.id if user else "-",
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": process_time,
        },
    )

    return response
