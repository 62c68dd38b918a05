# file: main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from routes.messages import router as messages_router
from routes.service_worker import router as service_worker_router
from database.db import init_db
from services.firebase import init_firebase

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Message Notifier API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages_router, prefix="/api/messages", tags=["messages"])
app.include_router(service_worker_router, tags=["web"])


@app.get("/")
async def root():
    return {"message": "Message Notifier API is running"}

@app.on_event("startup")
async def startup_event():
    init_firebase(settings)
    if settings.user_store == "sql":
        await init_db()
