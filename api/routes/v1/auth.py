"""
api/routes/v1/auth.py -- Registration and login REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create an identity; 201 with the public record
  POST /api/v1/auth/login     -- username-or-email + password; 200 with a bearer token

Both handlers are plain `def` functions. FastAPI runs them in its worker
threadpool, so bcrypt's deliberate slowness never blocks the event loop or
unrelated requests.

CredentialManager and TokenIssuer raise auth.errors.AuthError subclasses.
register() lets them reach the exception handler in api/main.py; login()
renders the same envelope itself so the failure response also carries
Cache-Control. The plaintext password is handed to the manager and not
referenced again.

Security:
  Cache-Control: no-store on login responses (success and failure) so tokens
  are never kept by intermediaries.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from auth.credentials import CredentialManager
from auth.errors import AuthError
from auth.models import RegistrationInput
from auth.tokens import TokenIssuer

# Auth policy:
# - POST /api/v1/auth/register: public -- registration creates the account
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Register a new identity.

    Returns the same "user already exists" conflict whether the username or
    the email collided.
    """
    manager: CredentialManager = request.app.state.credentials
    created = manager.register(
        RegistrationInput(
            username=body.username,
            email=body.email,
            phone=body.resolved_phone(),
            password=body.password,
        )
    )
    return UserResponse.from_user(created)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username-or-email and password; return a signed token.

    Unknown identifiers and wrong passwords produce the same 401 body.
    """
    manager: CredentialManager = request.app.state.credentials
    tokens: TokenIssuer = request.app.state.tokens
    try:
        user = manager.authenticate(body.identifier, body.password)
        token = tokens.issue(user)
    except AuthError as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=tokens.expires_in,
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
