"""Liveness endpoint."""
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.api_route("/ping", methods=["GET", "POST"])
async def ping(request: Request):
    return {"ok": True, "method": request.method}


@router.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/ping")
