from __future__ import annotations

from fastapi import APIRouter, Depends

from helpdesk.schemas.security import IdentityOut
from helpdesk.security.context import IdentityContext
from helpdesk.security.dependencies import get_identity

router = APIRouter(tags=["me"])


@router.get("/me", response_model=IdentityOut)
def me(identity: IdentityContext = Depends(get_identity)) -> dict[str, object]:
    return identity.to_dict()
