"""FastAPI routes receiving Lark event and card callbacks."""

import json

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from services.lark.callbacks import LarkCallbacks, to_raw_request

router = APIRouter(prefix="/webhook")


class UrlVerification(BaseModel):
	type: str = ""
	challenge: str = ""


def _to_response(raw) -> Response:
	headers = {key: value for key, value in (raw.headers or {}).items() if key.lower() != "content-length"}
	return Response(content=raw.content or b"", status_code=raw.status_code or 200, headers=headers)


@router.post("/event")
async def event_webhook_route(request: Request):
	callbacks: LarkCallbacks = request.app.state.lark_callbacks
	try:
		body = await request.body()
		raw = await callbacks.dispatch_event(to_raw_request(request.url.path, body, request.headers))
		return _to_response(raw)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/card")
async def card_webhook_route(request: Request):
	callbacks: LarkCallbacks = request.app.state.lark_callbacks
	try:
		body = await request.body()
		try:
			payload = json.loads(body or b"{}")
		except ValueError:
			payload = None
		if isinstance(payload, dict) and payload.get("type") == "url_verification":
			verification = UrlVerification(**payload)
			return {"challenge": verification.challenge}
		raw = await callbacks.dispatch_card(to_raw_request(request.url.path, body, request.headers))
		return _to_response(raw)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
