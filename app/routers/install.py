"""
Install Router
Installs .NET runtimes and SDKs through a dotnet-install script.

The request runs in the server's event loop; a client disconnect
cancels the running script.
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from app.config import settings
from dotnet_install.io.schema import DotNetAsset, InstallResult  # type: ignore
from dotnet_install.policy.profile import InstallProfile  # type: ignore
from dotnet_install.runner import install_assets  # type: ignore

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 1.0


# =============================================================================
# Request/Response Models
# =============================================================================

class InstallRunRequest(BaseModel):
    """Request to install runtimes and SDKs."""
    assets: List[DotNetAsset] = Field(default_factory=list)
    install_script: Optional[str] = Field(
        None,
        description="dotnet-install.sh / .cmd (default from settings)",
    )
    dotnet_home: Optional[str] = Field(
        None,
        description="Default install root (default from settings)",
    )
    timeout_seconds: Optional[float] = Field(
        None,
        gt=0,
        description="Per-asset timeout (default from settings)",
    )


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


async def _watch_disconnect(http_request: Request, cancel_event: asyncio.Event):
    while not cancel_event.is_set():
        if await http_request.is_disconnected():
            logger.info("client disconnected, cancelling install")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post(
    "/run",
    response_model=InstallResult,
    status_code=status.HTTP_200_OK,
    summary="Install .NET runtimes and SDKs",
)
async def run_install_endpoint(request: InstallRunRequest, http_request: Request):
    """
    Installs each asset in turn (SDKs first).  A failed install is a
    normal response with ``success: false``; an unsupported script type
    is a 422.
    """
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(http_request, cancel_event))
    try:
        return await install_assets(
            request.assets,
            request.install_script or settings.DOTNET_INSTALL_SCRIPT,
            dotnet_home=request.dotnet_home or settings.DOTNET_HOME,
            timeout_seconds=request.timeout_seconds or settings.DEFAULT_INSTALL_TIMEOUT,
            cancel_event=cancel_event,
            profile=InstallProfile.v0(),
        )
    except ValueError as e:
        logger.error("Install failed: %s", e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    finally:
        watcher.cancel()
