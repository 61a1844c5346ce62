"""
HTTP endpoints.

- GET  /                    plain "OK"
- GET  /ping                liveness plus mode
- POST /evaluate            bearer-authenticated submission evaluation
- GET  /admin/reload_refs   rebuild the reference cache (token query param)
- GET  /admin/test_embed    embed one URL and report the vector size
"""

import hmac
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PydanticValidationError

from castmatch.domain.entities import Submission
from castmatch.utils.exceptions import AuthError, ValidationError
from castmatch.utils.logger import get_logger

from .services import ServiceContainer

logger = get_logger(__name__)

router = APIRouter()

LIGHT_MODE_SKIPPED = {"ok": True, "skipped": "LIGHT_MODE"}


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _token_matches(supplied: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison; an unset expected value never matches."""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_evaluator_key(
    request: Request, services: ServiceContainer = Depends(get_services)
) -> None:
    """Check `Authorization: Bearer <key>` against the evaluator key."""
    header = request.headers.get("authorization", "")
    supplied = header[len("Bearer "):] if header.startswith("Bearer ") else None
    if not _token_matches(supplied, services.config.auth.evaluator_api_key):
        raise AuthError()


def require_admin_token(
    token: Optional[str] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
) -> None:
    """Check the `token` query parameter against the admin token."""
    if not _token_matches(token, services.config.auth.admin_token):
        raise AuthError()


def parse_submission(payload: Any) -> Submission:
    """Validate a raw JSON body into a Submission.

    Raises:
        ValidationError: If the body is malformed
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return Submission.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        if field.split(".")[0] == "photos":
            raise ValidationError("`photos` must be a non-empty array of URLs", field="photos") from e
        raise ValidationError(f"Invalid field `{field}`: {first.get('msg')}", field=field) from e


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "OK"


@router.get("/ping")
async def ping(services: ServiceContainer = Depends(get_services)) -> Dict[str, Any]:
    return {"ok": True, "mode": "light" if services.config.light_mode else "heavy"}


@router.post("/evaluate", dependencies=[Depends(require_evaluator_key)])
async def evaluate(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """
    Evaluate a model submission.

    Authentication runs as a dependency, so it is checked before the
    body is read.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    submission = parse_submission(payload)

    if services.config.light_mode:
        return {
            "decision": "review",
            "confidence": 0.75,
            "reason": "Endpoint OK; mock (LIGHT_MODE).",
            "details": submission.details(),
            "details_text": "; ".join(submission.photos[:2]),
            "face_similarity": 0.5,
            "face_cluster": "none",
        }

    result = await services.evaluator.evaluate(submission)
    return result.to_response()


@router.get("/admin/reload_refs", dependencies=[Depends(require_admin_token)])
async def reload_refs(services: ServiceContainer = Depends(get_services)) -> Dict[str, Any]:
    """Rebuild the reference cache and list the resulting groups."""
    if services.config.light_mode:
        return dict(LIGHT_MODE_SKIPPED)

    report = await services.reload_references()
    return {
        "ok": True,
        "clusters": [group.summary() for group in services.cache.groups],
        "report": report.model_dump(),
    }


@router.get("/admin/test_embed", dependencies=[Depends(require_admin_token)])
async def embed_check(
    url: Optional[str] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Embed a single image URL, bypassing the memo."""
    if services.config.light_mode:
        return dict(LIGHT_MODE_SKIPPED)
    if not url:
        raise ValidationError("missing ?url=", field="url")

    vector = await services.provider.embed_url(url, memoize=False)
    logger.info(f"test_embed {url}: dim={vector.shape[0]}")
    return {"ok": True, "dim": int(vector.shape[0]), "model": services.config.embedding.model}
