import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from rr_messaging.config import get_settings
from rr_messaging.routers.conversations import get_conversation_service
from rr_messaging.schemas.conversation import ReconcileResult
from rr_messaging.services.conversation_service import ConversationService


router = APIRouter(prefix="/admin", tags=["admin"])


def require_admin_token(x_admin_token: Optional[str] = Header(None)) -> None:
    expected = get_settings().admin_token
    if not expected:
        # maintenance endpoints are off unless a token is configured
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")


@router.post("/reconcile", response_model=ReconcileResult, dependencies=[Depends(require_admin_token)])
async def reconcile(service: ConversationService = Depends(get_conversation_service)):
    return await service.purge_orphaned_messages()
