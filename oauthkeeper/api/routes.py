"""
FastAPI routes for credential acquisition, refresh and status.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Dict, List
from urllib.parse import urlencode, urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from oauthkeeper.core.errors import (
    ConcurrentRefreshConflict,
    CredentialEngineError,
    CredentialNotFound,
    InvalidRedirect,
    InvalidState,
    MissingRefreshToken,
    NetworkOrTimeout,
    ProviderMisconfigured,
    ProviderRefreshRejected,
    RefreshNotSupported,
    TokenExchangeFailed,
    UnknownProvider,
)
from oauthkeeper.core.providers import require_provider
from oauthkeeper.dependencies import (
    get_acquisition_controller,
    get_app_settings,
    get_credential_store,
    get_refresh_orchestrator,
    require_job_secret,
)
from oauthkeeper.models.credential import Credential, now_ms
from oauthkeeper.schemas import (
    AuthorizationResponse,
    ConnectedProvider,
    ConnectionResult,
    ConnectionStatus,
    CredentialExpiryStatus,
    ManualCredentialPayload,
    ManualRefreshRequest,
    ManualRefreshResponse,
    OAuthCallbackPayload,
    RefreshJobResponse,
    RefreshJobSummaryPayload,
    RefreshResultEntry,
)
from oauthkeeper.services import RefreshJobSummary, describe_expiry

router = APIRouter()
logger = logging.getLogger(__name__)


_ERROR_STATUS = {
    InvalidState: HTTPStatus.BAD_REQUEST,
    InvalidRedirect: HTTPStatus.BAD_REQUEST,
    TokenExchangeFailed: HTTPStatus.BAD_REQUEST,
    UnknownProvider: HTTPStatus.BAD_REQUEST,
    RefreshNotSupported: HTTPStatus.BAD_REQUEST,
    MissingRefreshToken: HTTPStatus.BAD_REQUEST,
    CredentialNotFound: HTTPStatus.NOT_FOUND,
    ConcurrentRefreshConflict: HTTPStatus.CONFLICT,
    ProviderRefreshRejected: HTTPStatus.UNAUTHORIZED,
    NetworkOrTimeout: HTTPStatus.GATEWAY_TIMEOUT,
    ProviderMisconfigured: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def _http_error(exc: CredentialEngineError) -> HTTPException:
    """Translate a domain error into the JSON error body returned to clients."""
    status = _ERROR_STATUS.get(type(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
    return HTTPException(
        status_code=status,
        detail={"code": exc.code, "message": str(exc)},
    )


def _wants_html(request: Request) -> bool:
    accept_header = request.headers.get("accept", "")
    return "text/html" in accept_header.lower()


def _with_query(url: str, params: Dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def _check_redirect_target(target: str, frontend_base_url: Any, provider: str) -> None:
    """Accept only absolute URLs on the configured front-end origin."""
    allowed = urlsplit(str(frontend_base_url)) if frontend_base_url else None
    candidate = urlsplit(target)
    if allowed is None or (candidate.scheme, candidate.netloc.lower()) != (
        allowed.scheme,
        allowed.netloc.lower(),
    ):
        raise InvalidRedirect(
            "redirect_to must point at the configured front-end origin.",
            provider=provider,
        )


def _truncate_user_id(user_id: str) -> str:
    return f"{user_id[:8]}..." if len(user_id) > 8 else user_id


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/{provider}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    provider: str,
    request: Request,
    controller: Annotated[Any, Depends(get_acquisition_controller)],
    settings: Annotated[Any, Depends(get_app_settings)],
    user_id: str = Query(..., description="User identifier initiating authentication."),
    redirect_to: str | None = Query(
        default=None,
        description="Optional front-end URL to redirect back to once the provider is connected.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by persisting a state token and building the consent URL.
    """
    try:
        if redirect_to:
            _check_redirect_target(redirect_to, settings.frontend_base_url, provider)
        authorization = controller.initiate(
            user_id=user_id, provider=provider, redirect_to=redirect_to
        )
    except CredentialEngineError as exc:
        raise _http_error(exc) from exc

    if redirect or _wants_html(request):
        return RedirectResponse(
            url=authorization.url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )

    return AuthorizationResponse(
        provider=authorization.provider,
        authorization_url=authorization.url,
        state=authorization.state,
    )


@router.post("/auth/{provider}/callback", response_model=ConnectionResult)
async def handle_oauth_callback(
    provider: str,
    payload: OAuthCallbackPayload,
    controller: Annotated[Any, Depends(get_acquisition_controller)],
) -> ConnectionResult:
    """Complete the OAuth exchange and store the credential."""
    try:
        completed = await controller.complete(
            state=payload.state, code=payload.code, provider=provider
        )
    except CredentialEngineError as exc:
        logger.warning(
            "OAuth callback failed",
            extra={"provider": provider, "error": exc.code},
        )
        raise _http_error(exc) from exc

    return ConnectionResult(
        provider=completed.credential.provider,
        expires_at=completed.credential.expires_at,
        redirect_to=completed.redirect_to,
    )


@router.get("/auth/{provider}/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    provider: str,
    request: Request,
    controller: Annotated[Any, Depends(get_acquisition_controller)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str | None = Query(None, description="OAuth state token."),
    code: str | None = Query(None, description="Authorization code returned by the provider."),
    error: str | None = Query(None, description="Error reported by the provider."),
    error_description: str | None = Query(None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    redirect_to = None
    failure: CredentialEngineError | None = None
    result: ConnectionResult | None = None

    if not state:
        failure = InvalidState("Missing OAuth state.", provider=provider)
    elif error or not code:
        # The state is spent even though the provider sent no code.
        try:
            record = controller.consume_state(state=state, provider=provider)
        except InvalidState as exc:
            failure = exc
        else:
            redirect_to = record.redirect_to
            failure = TokenExchangeFailed(
                error_description or error or "Missing authorization code.",
                provider=provider,
                error_code=error,
            )
    else:
        try:
            completed = await controller.complete(
                state=state, code=code, provider=provider
            )
        except CredentialEngineError as exc:
            logger.warning(
                "OAuth callback failed",
                extra={"provider": provider, "error": exc.code},
            )
            failure = exc
        else:
            redirect_to = completed.redirect_to
            result = ConnectionResult(
                provider=completed.credential.provider,
                expires_at=completed.credential.expires_at,
                redirect_to=completed.redirect_to,
            )

    redirect_target = redirect_to or settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        if failure is not None:
            params = {"error": failure.code, "provider": provider}
        else:
            params = {"success": "true", "provider": provider}
        return RedirectResponse(
            url=_with_query(str(redirect_target), params),
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )

    if failure is not None:
        raise _http_error(failure)
    return JSONResponse(content=result.model_dump())


@router.post(
    "/auth/refresh-tokens",
    response_model=RefreshJobResponse,
    dependencies=[Depends(require_job_secret)],
)
async def trigger_refresh_job(
    orchestrator: Annotated[Any, Depends(get_refresh_orchestrator)],
) -> RefreshJobResponse:
    """Run one refresh job invocation and report what happened."""
    summary: RefreshJobSummary = await orchestrator.run()
    return RefreshJobResponse(
        success=True,
        summary=RefreshJobSummaryPayload(
            totalChecked=summary.total_checked,
            successfulRefreshes=summary.successful_refreshes,
            failedRefreshes=summary.failed_refreshes,
            skippedRefreshes=summary.skipped_refreshes,
            executedAt=summary.executed_at,
            durationMs=summary.duration_ms,
            results=[
                RefreshResultEntry(
                    provider=result.provider,
                    userId=_truncate_user_id(result.user_id),
                    success=result.success,
                    outcome=result.outcome.value,
                    error=result.error,
                )
                for result in summary.results
            ],
        ),
    )


@router.get("/auth/refresh-tokens", status_code=HTTPStatus.OK)
async def describe_refresh_job(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Describe how the refresh job is triggered."""
    return {
        "endpoint": "/api/auth/refresh-tokens",
        "method": "POST",
        "authentication": (
            "Bearer CRON_SECRET"
            if settings.is_production or settings.refresh.job_secret
            else "none"
        ),
        "intervalSeconds": settings.refresh.interval_seconds,
        "deadlineSeconds": settings.refresh.deadline_seconds,
        "description": (
            "Refreshes every stored credential that expires within 15 minutes "
            "or has already expired."
        ),
    }


@router.post("/auth/refresh-token", response_model=ManualRefreshResponse)
async def refresh_single_credential(
    payload: ManualRefreshRequest,
    orchestrator: Annotated[Any, Depends(get_refresh_orchestrator)],
) -> ManualRefreshResponse:
    """Refresh one credential immediately, whatever its expiry status."""
    try:
        credential = await orchestrator.refresh_credential(
            user_id=payload.user_id, provider=payload.provider
        )
    except CredentialEngineError as exc:
        raise _http_error(exc) from exc

    return ManualRefreshResponse(
        provider=credential.provider,
        expiresAt=credential.expires_at,
        refreshedAt=credential.last_refreshed_at,
    )


@router.get("/credentials", response_model=List[ConnectedProvider])
async def list_credentials(
    store: Annotated[Any, Depends(get_credential_store)],
    user_id: str = Query(..., description="User whose connections are listed."),
) -> List[ConnectedProvider]:
    return [
        ConnectedProvider(
            provider=credential.provider,
            source=credential.source,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
        )
        for credential in store.list_for_user(user_id)
    ]


@router.get("/credentials/expiry", response_model=List[CredentialExpiryStatus])
async def list_credential_expiry(
    store: Annotated[Any, Depends(get_credential_store)],
    user_id: str = Query(..., description="User whose credentials are inspected."),
) -> List[CredentialExpiryStatus]:
    """Report the expiry status of every connected provider."""
    now = now_ms()
    return [describe_expiry(credential, now) for credential in store.list_for_user(user_id)]


@router.get("/credentials/{provider}", response_model=ConnectionStatus)
async def get_connection_status(
    provider: str,
    store: Annotated[Any, Depends(get_credential_store)],
    user_id: str = Query(...),
) -> ConnectionStatus:
    try:
        capabilities = require_provider(provider)
    except UnknownProvider as exc:
        raise _http_error(exc) from exc
    credential = store.get(user_id=user_id, provider=capabilities.name)
    return ConnectionStatus(provider=capabilities.name, connected=credential is not None)


@router.put("/credentials/{provider}", response_model=ConnectedProvider)
async def store_manual_credential(
    provider: str,
    payload: ManualCredentialPayload,
    store: Annotated[Any, Depends(get_credential_store)],
    user_id: str = Query(...),
) -> ConnectedProvider:
    """Store a token entered by hand, replacing any existing connection."""
    try:
        capabilities = require_provider(provider)
    except UnknownProvider as exc:
        raise _http_error(exc) from exc

    credential = store.upsert(
        Credential(
            user_id=user_id,
            provider=capabilities.name,
            access_token=payload.access_token,
            refresh_token=payload.refresh_token or None,
            expires_at=payload.expires_at,
            issued_at=now_ms(),
            scopes=tuple(payload.scopes),
            source="manual",
        )
    )
    logger.info(
        "Stored manually entered credential",
        extra={"provider": capabilities.name, "user_id": user_id},
    )
    return ConnectedProvider(
        provider=credential.provider,
        source=credential.source,
        created_at=credential.created_at,
        updated_at=credential.updated_at,
    )


@router.delete("/credentials/{provider}", response_model=ConnectionStatus)
async def disconnect_credential(
    provider: str,
    store: Annotated[Any, Depends(get_credential_store)],
    user_id: str = Query(...),
) -> ConnectionStatus:
    """Disconnect a provider by deleting its stored credential."""
    if not store.delete(user_id=user_id, provider=provider):
        raise _http_error(
            CredentialNotFound(f"No credentials found for {provider}.", provider=provider)
        )
    logger.info(
        "Disconnected provider", extra={"provider": provider, "user_id": user_id}
    )
    return ConnectionStatus(provider=provider, connected=False)
