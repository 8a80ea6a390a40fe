from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.models.schemas import ErrorResponse, SignupRequest, SignupResponse
from app.services.errors import SignupError
from app.services.signup_service import SignupContext, evaluate_signup
from app.utils.logging import logger

router = APIRouter(tags=["accounts"])


def get_context(request: Request) -> SignupContext:
    return request.app.state.signup_context


def error_response(exc: SignupError) -> JSONResponse:
    if exc.cause:
        logger.warning(f"{type(exc).__name__}: {exc.cause}")
    body = ErrorResponse(error=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@router.post("", response_model=SignupResponse, responses={
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
})
def create_account(payload: SignupRequest, ctx: SignupContext = Depends(get_context)):
    try:
        result = evaluate_signup(ctx, payload.username, payload.password, payload.request_id)
    except SignupError as e:
        return error_response(e)
    except Exception:
        # Built here, inside CORSMiddleware; app-level Exception handlers respond from outside it.
        logger.exception("Unexpected error while creating account")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    body = SignupResponse(message="Account created successfully", account_id=result.account_id)
    return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))
