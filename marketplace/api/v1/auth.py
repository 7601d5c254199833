from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from marketplace.core.rate_limiter import RateLimitScope, enforce_rate_limit
from marketplace.db.session import get_db
from marketplace.schemas.auth import AccountResponse, LoginRequest, RegisterRequest, TokenResponse
from marketplace.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AccountResponse:
    enforce_rate_limit(RateLimitScope.REGISTER, _client_ip(request))
    return AccountResponse.model_validate(register_user(payload=payload, db=db))


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    enforce_rate_limit(RateLimitScope.LOGIN, _client_ip(request))
    return login_user(payload=payload, db=db)
