import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from note_triage.api.schemas import (
    BatchClassificationResponse,
    BatchClassifyRequest,
    BatchItemResponse,
    ClassificationResponse,
    ClassifyRequest,
    HealthResponse,
)
from note_triage.core.config import get_settings, load_config
from note_triage.core.errors import InvalidRequestError, NoProviderAvailableError
from note_triage.core.pipeline import ClassificationService, build_service
from note_triage.core.utils import split_note_lines

# Configure logger
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("API")

# Load environment variables
load_dotenv()

app_state = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting classification proxy...")

    settings = get_settings(load_config(os.getenv("CONFIG_PATH", "config.yaml")))
    logging.getLogger().setLevel(settings.log_level)

    app_state["service"] = build_service(settings)
    status = app_state["service"].router.status()
    if status["primary"] == "none":
        logger.warning("No LLM provider configured; classification requests will fail with 502.")
    else:
        logger.info(f"🤖 Providers ready: primary={status['primary']} fallback={status['fallback']}")

    yield
    logger.info("🛑 Shutting down classification proxy...")


app = FastAPI(title="Note Triage API", lifespan=lifespan)


def get_service() -> ClassificationService:
    # Dependency injection for the classification pipeline
    service = app_state.get("service")
    if service is None:
        raise HTTPException(status_code=503, detail="Service is not initialized.")
    return service


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": str(exc)})


@app.exception_handler(NoProviderAvailableError)
async def upstream_error_handler(request: Request, exc: NoProviderAvailableError):
    logger.error(f"[{request.url.path}] upstream error: {exc}")
    return JSONResponse(status_code=502, content={"error": "Upstream error", "detail": str(exc)})


@app.get("/health", response_model=HealthResponse)
def health(service: ClassificationService = Depends(get_service)):
    status = service.router.status()
    return HealthResponse(ok=True, primary=status["primary"], fallback=status["fallback"], cache_size=len(service.cache))


@app.post("/classify", response_model=ClassificationResponse)
def classify(request: ClassifyRequest, service: ClassificationService = Depends(get_service)):
    """
    Classifies one note into the caller's taxonomy.
    """
    started = time.perf_counter()
    result, cached = service.classify(request.to_domain(request.text))
    return ClassificationResponse.from_result(result, cached=cached, ms=0 if cached else _elapsed_ms(started))


@app.post("/analyze", response_model=BatchClassificationResponse)
def analyze(request: BatchClassifyRequest, service: ClassificationService = Depends(get_service)):
    """
    Classifies every non-empty line of a list with a single model call.
    """
    started = time.perf_counter()
    lines = split_note_lines(request.lines if request.lines is not None else request.text)
    items, provider, cached = service.analyze(request.to_domain(request.text or ""), lines)
    return BatchClassificationResponse(
        items=[BatchItemResponse.from_result(item) for item in items],
        provider=provider,
        cached=cached,
        ms=0 if cached else _elapsed_ms(started),
    )


@app.post("/classify-batch", response_model=BatchClassificationResponse)
def classify_batch(request: BatchClassifyRequest, service: ClassificationService = Depends(get_service)):
    """
    Classifies every non-empty line with its own model call; calls run concurrently.
    """
    started = time.perf_counter()
    lines = split_note_lines(request.lines if request.lines is not None else request.text)
    results = service.classify_lines(request.to_domain(request.text or ""), lines)
    return BatchClassificationResponse(
        items=[BatchItemResponse.from_result(result, cached=cached) for result, cached in results],
        ms=_elapsed_ms(started),
    )
