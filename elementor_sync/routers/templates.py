from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from elementor_sync.db import get_session
from elementor_sync.schemas import TemplateListResponse, TemplateSummary
from elementor_sync.services.targets import TargetResolver

router = APIRouter(prefix="/v1", tags=["templates"])


@router.get("/templates", response_model=TemplateListResponse)
def list_templates(session: Session = Depends(get_session)) -> TemplateListResponse:
    templates = TargetResolver(session).list_templates()
    return TemplateListResponse(templates=[TemplateSummary(**item) for item in templates])
