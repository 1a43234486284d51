import sys
import time
import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response, status
from loguru import logger
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from auth import TokenVerifier, UnverifiedTokenVerifier, authenticate, get_token_verifier
from config import settings
from errors import UserNotFoundError, UserValidationError, internal_error_response, register_error_handlers
from models import UserStore, users_db
from schemas import ErrorResponse, UserCreate, UserResponse, UserUpdate, ValidationErrorResponse
from validation import validate_user

SERVICE_NAME = settings.service_name

# Config logging JSON (niveaux INFO, WARNING, ERROR)
logger.remove()  # Supprime le handler par défaut
logger.add(sys.stderr, level=settings.log_level)
logger.add(
    sink=settings.log_file,
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=settings.log_level,
    serialize=True,  # Format JSON
    rotation="1 day",  # Rotation quotidienne
)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)

app = FastAPI(title="Users Service")


def endpoint_label(request: Request) -> str:
    """Route template (``/users/{user_id}``) when matched, raw path otherwise."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def count_error(request: Request, error_type: str) -> None:
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type=error_type).inc()


register_error_handlers(app, on_error=count_error)

def warn_if_unverified(verifier: TokenVerifier) -> None:
    if isinstance(verifier, UnverifiedTokenVerifier):
        logger.warning(
            "AUTH_MODE=unverified: bearer token signatures are NOT checked, any well-formed token is accepted"
        )


warn_if_unverified(get_token_verifier())


# Middleware pour logger les requests avec correlation ID (observabilité)
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Generate or propagate correlation ID (trace-id)
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        logger.info(f"Request: {request.method} {request.url.path}")

        # Les erreurs non gérées repassent ici pour garder trace-id et métriques
        try:
            response = await call_next(request)
        except Exception as exc:
            response = internal_error_response(request, exc, count_error)

        latency = time.time() - start_time
        endpoint = endpoint_label(request)
        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        logger.bind(status=response.status_code, latency=latency).info(
            f"Response status: {response.status_code}"
        )

        response.headers["X-Trace-ID"] = trace_id
        return response


@app.get("/metrics")
async def metrics():
    """Endpoint /metrics compatible Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


def get_user_store() -> UserStore:
    return users_db


router = APIRouter(
    prefix="/users",
    dependencies=[Depends(authenticate)],
    responses={401: {"model": ErrorResponse}},
)


@router.get("", response_model=List[UserResponse])
async def get_users(store: UserStore = Depends(get_user_store)):
    logger.info("Fetching all users")
    return store.list()


@router.get("/{user_id}", response_model=UserResponse, responses={404: {"model": ErrorResponse}})
async def get_user(user_id: int, store: UserStore = Depends(get_user_store)):
    logger.info(f"Fetching user {user_id}")
    user = store.get(user_id)
    if user is None:
        logger.warning(f"User {user_id} not found")
        raise UserNotFoundError(user_id)
    return user


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ValidationErrorResponse}},
)
async def create_user(user: UserCreate, response: Response, store: UserStore = Depends(get_user_store)):
    logger.info(f"Creating user: {user.first_name} {user.last_name}")
    errors = validate_user(user)
    if errors:
        logger.warning(f"Rejected user creation: {errors}")
        raise UserValidationError(errors)

    new_user = store.insert(user.first_name, user.last_name, user.email)
    response.headers["Location"] = f"/users/{new_user.id}"
    logger.info(f"User created with ID {new_user.id}")
    return new_user


# Remplacement complet, sans validation (contrairement à POST)
@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={400: {"model": ValidationErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_user(
    user_id: int,
    user: Optional[UserUpdate] = Body(None),
    store: UserStore = Depends(get_user_store),
):
    if user is None:
        logger.warning(f"Update of user {user_id} without a body")
        raise UserValidationError(["User data is required."])

    logger.info(f"Replacing user {user_id}")
    updated = store.replace(user_id, user.first_name, user.last_name, user.email)
    if updated is None:
        logger.warning(f"User {user_id} not found")
        raise UserNotFoundError(user_id)
    return updated


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
)
async def delete_user(user_id: int, store: UserStore = Depends(get_user_store)):
    logger.info(f"Deleting user {user_id}")
    if not store.remove(user_id):
        logger.warning(f"User {user_id} not found")
        raise UserNotFoundError(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(router)


if __name__ == "__main__":
    logger.info(f"Starting Users Service on port {settings.port}")
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
