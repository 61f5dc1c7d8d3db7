from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from elementor_sync.db import get_session
from elementor_sync.schemas import KitSettingsResponse, KitSettingsUpdateRequest
from elementor_sync.services.kit import KitSettingsError, KitStore

router = APIRouter(prefix="/v1", tags=["kit"])


@router.get("/kit-settings", response_model=KitSettingsResponse)
def get_kit_settings(session: Session = Depends(get_session)) -> KitSettingsResponse:
    try:
        return KitSettingsResponse(**KitStore(session).describe())
    except KitSettingsError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/kit-settings", response_model=KitSettingsResponse)
def update_kit_settings(
    payload: KitSettingsUpdateRequest,
    session: Session = Depends(get_session),
) -> KitSettingsResponse:
    try:
        refreshed = KitStore(session).update(
            colors=payload.colors,
            typography=payload.typography,
            extra_settings=payload.settings,
        )
    except KitSettingsError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return KitSettingsResponse(**refreshed)
