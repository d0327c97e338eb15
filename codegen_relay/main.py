from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from codegen_relay.config import Settings, get_settings
from codegen_relay.errors import (
    GENERATE_FAILED,
    PROBLEM_STATEMENT_REQUIRED,
    PSEUDOCODE_REQUIRED,
    REQUEST_ID_HEADER,
    SOLVE_FAILED,
    ErrorContext,
    ErrorHandler,
    InferenceAPIError,
    MissingInputError,
    UpstreamError,
    setup_error_handlers,
)
from codegen_relay.health import HealthChecker
from codegen_relay.inference.client import InferenceClient
from codegen_relay.logging_utils import configure_logging
from codegen_relay.metrics import (
    ACTIVE_CONNECTIONS,
    REQUEST_COUNTER,
    REQUEST_LATENCY,
    metrics_app,
    record_request_metrics,
    update_service_info,
)
from codegen_relay.models.request import GenerateRequest, SolveRequest
from codegen_relay.models.response import ErrorResponse, GenerateResponse, SolveResponse
from codegen_relay.prompts import build_code_prompt, build_solve_prompt

logger = structlog.get_logger()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Required text is missing"},
    500: {"model": ErrorResponse, "description": "Upstream model call failed"},
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    update_service_info(settings.model_name)

    # An injected client belongs to the caller and is left open on shutdown
    owns_client = app.state.inference_client is None
    if owns_client:
        app.state.inference_client = InferenceClient(settings=settings, logger=logger)

    logger.info("Service started successfully", port=settings.port, model=settings.model_name)
    try:
        yield
    finally:
        logger.info("Service shutting down")
        if owns_client:
            await app.state.inference_client.aclose()
            # A restarted lifespan must build a fresh client, not reuse the closed one
            app.state.inference_client = None


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_inference_client(request: Request) -> InferenceClient:
    client = request.app.state.inference_client
    if client is None:
        raise RuntimeError("Inference client not initialized")
    return client


async def relay_prompt(
    *,
    route: str,
    operation: str,
    prompt: str,
    client: InferenceClient,
    failure_message: str,
    request_id: str,
) -> str:
    """Send one prompt upstream and return the generated text.

    Any upstream failure becomes an UpstreamError carrying ``failure_message``;
    the upstream detail only reaches the log.
    """
    start = time.perf_counter()
    ACTIVE_CONNECTIONS.inc()

    async with ErrorContext(operation, request_id=request_id):
        try:
            text = await client.generate_text(prompt)
        except InferenceAPIError as e:
            logger.error(
                f"{operation}_failed",
                detail=e.detail,
                upstream_status=e.status_code,
                request_id=request_id,
            )
            REQUEST_COUNTER.labels(route=route, status="error").inc()
            raise UpstreamError(failure_message) from e
        except Exception as e:
            logger.exception(
                f"{operation}_failed",
                error=str(e),
                request_id=request_id,
            )
            REQUEST_COUNTER.labels(route=route, status="error").inc()
            raise UpstreamError(failure_message) from e
        finally:
            ACTIVE_CONNECTIONS.dec()
            REQUEST_LATENCY.labels(route=route).observe(time.perf_counter() - start)

    record_request_metrics(len(prompt), len(text))
    REQUEST_COUNTER.labels(route=route, status="ok").inc()
    return text


def create_app(
    settings: Settings | None = None,
    inference_client: InferenceClient | None = None,
) -> FastAPI:
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Code Generation Relay",
        version="0.1.0",
        description="Relays pseudocode and problem statements to a hosted text-generation model",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.debug = settings.debug
    app.state.inference_client = inference_client
    app.state.health_checker = HealthChecker(settings)

    setup_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or ErrorHandler.generate_request_id()
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status_code = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)
            return response
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
                client_ip=getattr(request.client, "host", None),
            )
            structlog.contextvars.unbind_contextvars("request_id")

    @app.get("/healthz")
    async def healthz(request: Request) -> dict:
        """Local readiness: configuration and HTTP client state."""
        checker: HealthChecker = request.app.state.health_checker
        return checker.run_health_checks(request.app.state.inference_client)

    @app.post("/generate", response_model=GenerateResponse, responses=ERROR_RESPONSES)
    async def generate(
        req: GenerateRequest,
        request: Request,
        client: InferenceClient = Depends(get_inference_client),
    ) -> GenerateResponse:
        route = "/generate"
        if not req.has_input():
            REQUEST_COUNTER.labels(route=route, status="rejected").inc()
            raise MissingInputError(PSEUDOCODE_REQUIRED)

        text = await relay_prompt(
            route=route,
            operation="code_generation",
            prompt=build_code_prompt(req.pseudocode, req.language),
            client=client,
            failure_message=GENERATE_FAILED,
            request_id=request.state.request_id,
        )
        return GenerateResponse(code=text)

    @app.post("/solve", response_model=SolveResponse, responses=ERROR_RESPONSES)
    async def solve(
        req: SolveRequest,
        request: Request,
        client: InferenceClient = Depends(get_inference_client),
    ) -> SolveResponse:
        route = "/solve"
        if not req.has_input():
            REQUEST_COUNTER.labels(route=route, status="rejected").inc()
            raise MissingInputError(PROBLEM_STATEMENT_REQUIRED)

        text = await relay_prompt(
            route=route,
            operation="problem_solving",
            prompt=build_solve_prompt(req.problem_statement),
            client=client,
            failure_message=SOLVE_FAILED,
            request_id=request.state.request_id,
        )
        return SolveResponse(solution=text)

    @app.get("/config")
    async def config_info(settings: Settings = Depends(get_app_settings)) -> dict:
        """Non-secret runtime configuration."""
        return settings.get_env_info()

    if settings.metrics_enabled:
        app.mount("/metrics", metrics_app)

    return app


app = create_app()
