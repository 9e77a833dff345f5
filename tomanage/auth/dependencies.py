"""FastAPI dependencies for user identity and app services."""

import os

from fastapi import Header, Request
from dotenv import load_dotenv

load_dotenv()

DEFAULT_USER_ID = os.getenv("DEFAULT_USER_ID", "default")


def get_current_user_id(x_user_id: str = Header(default="", alias="X-User-Id")) -> str:
    """User id from the X-User-Id header, falling back to DEFAULT_USER_ID."""
    user_id = x_user_id.strip()
    return user_id or DEFAULT_USER_ID


def get_storage(request: Request):
    return request.app.state.storage


def get_task_service(request: Request):
    return request.app.state.task_service


def get_ai_client(request: Request):
    return request.app.state.ai_client


def get_recommendation_engine(request: Request):
    return request.app.state.recommendation_engine
