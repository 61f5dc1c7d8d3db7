from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from elementor_sync.db import get_session
from elementor_sync.schemas import ApplyEditsRequest, LlmEditRequest, ReplaceTextRequest, TargetFields
from elementor_sync.services.session import MutationError, MutationSession
from elementor_sync.services.targets import EditTarget, TargetResolutionError
from elementor_sync.widgets import clean_widget_types

router = APIRouter(prefix="/v1", tags=["edits"])


def get_mutation_session(session: Session = Depends(get_session)) -> MutationSession:
    return MutationSession(session)


def _target_error(exc: TargetResolutionError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _mutation_error(exc: MutationError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail())


def _query_widget_types(values: list[str] | None) -> tuple[str, ...]:
    # Accepts ?widget_types=a,b as well as repeated ?widget_types=a&widget_types=b.
    if not values:
        return clean_widget_types(None)
    return clean_widget_types([part for value in values for part in value.split(",")])


@router.post("/replace-text")
def replace_text(
    payload: ReplaceTextRequest,
    mutations: MutationSession = Depends(get_mutation_session),
) -> dict[str, Any]:
    try:
        return mutations.replace_text(
            EditTarget.from_params(payload),
            find=payload.find,
            replace=payload.replace,
            widget_types=payload.widget_types,
        )
    except TargetResolutionError as exc:
        raise _target_error(exc) from exc
    except MutationError as exc:
        raise _mutation_error(exc) from exc


@router.get("/inspect")
def inspect(
    url: str | None = None,
    template_id: int | None = Query(default=None, ge=0),
    document_type: str | None = None,
    slug: str | None = None,
    widget_types: list[str] | None = Query(default=None),
    mutations: MutationSession = Depends(get_mutation_session),
) -> dict[str, Any]:
    target = EditTarget.from_params(
        TargetFields(url=url, template_id=template_id, document_type=document_type, slug=slug)
    )
    try:
        return mutations.inspect(target, widget_types=_query_widget_types(widget_types))
    except TargetResolutionError as exc:
        raise _target_error(exc) from exc


@router.post("/llm-edit")
def llm_edit(
    payload: LlmEditRequest,
    mutations: MutationSession = Depends(get_mutation_session),
) -> dict[str, Any]:
    try:
        return mutations.llm_edit(
            EditTarget.from_params(payload),
            instruction=payload.instruction,
            widget_types=payload.widget_types,
        )
    except TargetResolutionError as exc:
        raise _target_error(exc) from exc
    except MutationError as exc:
        raise _mutation_error(exc) from exc


@router.post("/apply-edits")
def apply_edits(
    payload: ApplyEditsRequest,
    mutations: MutationSession = Depends(get_mutation_session),
) -> dict[str, Any]:
    try:
        return mutations.apply_edits(
            EditTarget.from_params(payload),
            raw_edits=payload.edits,
            widget_types=payload.widget_types,
        )
    except TargetResolutionError as exc:
        raise _target_error(exc) from exc
    except MutationError as exc:
        raise _mutation_error(exc) from exc
