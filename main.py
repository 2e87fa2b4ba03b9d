import uvicorn
import time
import logging
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from safex.api.analyze_code import router as analyze_router
from safex.api.fuzzing import router as fuzzing_router
from safex.api.log_report import router as log_report_router
from safex.api.repositories import router as repositories_router
from safex.core.config import CORS_ORIGINS, PORT
from safex.utils.logging_config import setup_logging

setup_logging(level=logging.INFO)
logger = logging.getLogger("main")

app = FastAPI(title="Safex Anchor Audit API")


# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Incoming: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Outgoing: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Time: {process_time:.2f}ms"
            )
            return response
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - Error: {str(e)}")
            raise e

app.add_middleware(LoggingMiddleware)

# ---------------------------------------------------------------------------
# CORS: allow the dashboard dev servers to call the backend
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Accept", "Content-Type"],
    max_age=3600,
)


@app.get("/")
async def hello():
    return {"message": "Hello world!"}


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# Register routers
app.include_router(repositories_router)
app.include_router(analyze_router)
app.include_router(fuzzing_router)
app.include_router(log_report_router)

if __name__ == "__main__":
    logger.info("Starting Safex backend server at http://0.0.0.0:%d", PORT)
    uvicorn.run("main:app", host="0.0.0.0", port=PORT)
