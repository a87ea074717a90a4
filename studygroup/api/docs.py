"""
OpenAPI schema and interactive docs, visible to administrators only. The
app is created with its own docs routes switched off and these are mounted
in their place.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse

from .dependencies import handle_admin_user

OPENAPI_URL = "/openapi.json"

docs_routes = APIRouter(
    dependencies=[Depends(handle_admin_user)], include_in_schema=False
)


@docs_routes.get(OPENAPI_URL)
async def openapi_schema(request: Request):
    return JSONResponse(request.app.openapi())


@docs_routes.get("/docs")
async def swagger_ui(request: Request):
    return get_swagger_ui_html(
        openapi_url=OPENAPI_URL, title=f"{request.app.title} (Swagger)"
    )


@docs_routes.get("/redoc")
async def redoc(request: Request):
    return get_redoc_html(openapi_url=OPENAPI_URL, title=f"{request.app.title} (Redoc)")
