# file: routes/service_worker.py

from fastapi import APIRouter
from fastapi.responses import Response

from config import settings
from services.service_worker import render_service_worker

router = APIRouter()


@router.get("/firebase-messaging-sw.js", include_in_schema=False)
async def firebase_messaging_sw():
    return Response(
        content=render_service_worker(settings),
        media_type="application/javascript",
        headers={"Service-Worker-Allowed": "/"},
    )
