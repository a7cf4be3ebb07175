import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farminvest import config
from farminvest.auth_utils import create_user_access_token, get_current_user, hash_password, verify_password
from farminvest.db import Database, get_db
from farminvest.exceptions import (
    AppError,
    AuthenticationError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from farminvest.schemas import (
    APIError,
    APIValidationErrors,
    AuthResponse,
    HealthStatus,
    Investment,
    InvestmentCreate,
    LoginRequest,
    MeResponse,
    RegisterRequest,
    UserProfile,
    UserPublic,
)
from farminvest.validators import parse_amount, validate_investment, validate_login, validate_registration

logger = logging.getLogger(__name__)

INVESTMENT_COLUMNS = "id, farmer_name, amount, crop, created_at"

openapi_tags = [
    {"name": "Health", "description": "Service and database health."},
    {"name": "Auth", "description": "Registration, login and current user."},
    {"name": "Investments", "description": "Farmer investment records."},
]

app = FastAPI(
    title="FarmInvest API",
    description=(
        "Backend API for tracking farmer investments.\n\n"
        "Auth: Use the `Authorization: Bearer <token>` header for protected routes."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_error_responses: Dict[int, Dict[str, Any]] = {
    400: {"model": APIValidationErrors, "description": "Invalid request body"},
    500: {"model": APIError, "description": "Internal server error"},
}


@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": ["Request body must be a JSON object"]},
    )


@app.exception_handler(Exception)
async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s failed unexpectedly", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.on_event("startup")
def _startup() -> None:
    config.check_jwt_secret()
    app.state.db = Database.from_env()
    app.state.db.check_connection()


@app.on_event("shutdown")
def _shutdown() -> None:
    database: Optional[Database] = getattr(app.state, "db", None)
    if database is not None:
        database.close()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@app.get("/api/health", response_model=HealthStatus, tags=["Health"], summary="Health check")
def health_check(db: Database = Depends(get_db)) -> HealthStatus:
    """Check the database. Always answers 200; a failed check is reported in the body."""
    try:
        db.ping()
    except Exception as exc:
        logger.warning("Health check database ping failed: %s", exc)
        return HealthStatus(status="error", timestamp=_utc_timestamp(), database="disconnected")
    return HealthStatus(status="ok", timestamp=_utc_timestamp(), database="connected")


# =========================
# Auth
# =========================

@app.post(
    "/api/auth/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    responses=_error_responses,
    tags=["Auth"],
    summary="Register",
)
def register(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)) -> AuthResponse:
    """Create a user and return it with an access token."""
    body = payload or {}
    errors = validate_registration(body)
    if errors:
        raise ValidationError(errors)
    data = RegisterRequest.from_body(body)

    existing = db.fetch_one("SELECT id FROM users WHERE email=%s", [data.email])
    if existing:
        raise ConflictError("Email already registered")

    try:
        user = db.execute_returning_one(
            "INSERT INTO users (name, email, password) VALUES (%s, %s, %s) RETURNING id, name, email",
            [data.name, data.email, hash_password(data.password)],
        )
    except DuplicateKeyError:
        # Lost the race against a concurrent registration for the same email.
        raise ConflictError("Email already registered")

    token = create_user_access_token(user["id"], user["email"], user["name"])
    return AuthResponse(message="Registration successful", user=UserPublic(**user), token=token)


@app.post("/api/auth/login", response_model=AuthResponse, responses=_error_responses, tags=["Auth"], summary="Login")
def login(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)) -> AuthResponse:
    """Authenticate a user and return an access token."""
    body = payload or {}
    errors = validate_login(body)
    if errors:
        raise ValidationError(errors)
    data = LoginRequest.from_body(body)

    user = db.fetch_one("SELECT id, name, email, password FROM users WHERE email=%s", [data.email])
    if not user or not verify_password(data.password, user["password"]):
        raise AuthenticationError("Invalid email or password")

    token = create_user_access_token(user["id"], user["email"], user["name"])
    return AuthResponse(
        message="Login successful",
        user=UserPublic(id=user["id"], name=user["name"], email=user["email"]),
        token=token,
    )


@app.get("/api/auth/me", response_model=MeResponse, tags=["Auth"], summary="Get current user")
def me(claims: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)) -> MeResponse:
    """Return the user the bearer token was issued to."""
    user = db.fetch_one("SELECT id, name, email, created_at FROM users WHERE id=%s", [claims["id"]])
    if not user:
        raise NotFoundError("User")
    return MeResponse(user=UserProfile(**user))


# =========================
# Investments
# =========================

@app.get("/api/investments", response_model=List[Investment], tags=["Investments"], summary="List investments")
def list_investments(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    """List all investments, newest first."""
    return db.fetch_all(f"SELECT {INVESTMENT_COLUMNS} FROM investments ORDER BY created_at DESC, id DESC")


@app.post(
    "/api/investments",
    status_code=status.HTTP_201_CREATED,
    response_model=Investment,
    responses=_error_responses,
    tags=["Investments"],
    summary="Create investment",
)
def create_investment(payload: Optional[Dict[str, Any]] = Body(None), db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Record an investment and return the stored row."""
    body = payload or {}
    errors = validate_investment(body)
    if errors:
        raise ValidationError(errors)
    data = InvestmentCreate.from_body(body, parse_amount(body["amount"]))

    created = db.execute_returning_one(
        "INSERT INTO investments (farmer_name, amount, crop) VALUES (%s, %s, %s) RETURNING id",
        [data.farmer_name, data.amount, data.crop],
    )
    row = db.fetch_one(f"SELECT {INVESTMENT_COLUMNS} FROM investments WHERE id=%s", [created["id"]])
    if not row:
        raise PersistenceError(f"Investment {created['id']} vanished after insert")
    return row


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the API with uvicorn on HOST:PORT."""
    config.configure_logging()
    uvicorn.run(app, host=config.server_host(), port=config.server_port())


if __name__ == "__main__":
    run()
