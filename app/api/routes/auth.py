from fastapi import APIRouter, Depends, Request, status

from app.core.rate_limit import client_key, enforce_rate_limit
from app.schemas.auth import (
    CredentialsRequest,
    MessageResponse,
    ResendConfirmationRequest,
    SessionResponse,
    UserResponse,
)
from app.services.auth_service import AuthService

router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
    dependencies=[Depends(enforce_rate_limit)],
)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post(
    "/sign-up",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    payload: CredentialsRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Register a new account.

    Returns 400 for invalid input, 409 when the email is taken and 429 when
    the client made too many attempts.
    """
    user = await service.sign_up(
        payload.email, payload.password, client_key=client_key(request)
    )
    return UserResponse(id=user.id, email=user.email, email_verified=user.email_verified)


@router.post("/sign-in", response_model=SessionResponse)
async def sign_in(
    payload: CredentialsRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Exchange credentials for a session token.

    Returns 401 for rejected credentials and 429 after too many attempts.
    """
    session = await service.sign_in(
        payload.email, payload.password, client_key=client_key(request)
    )
    return SessionResponse(
        access_token=session.access_token,
        user=UserResponse(
            id=session.user.id,
            email=session.user.email,
            email_verified=session.user.email_verified,
        ),
    )


@router.post("/resend-confirmation", response_model=MessageResponse)
async def resend_confirmation(
    payload: ResendConfirmationRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    # Same answer whether or not the account exists
    await service.resend_confirmation(payload.email, client_key=client_key(request))
    return MessageResponse(message="If the account exists, a confirmation email was sent.")
