"""
HTTP Routes
===========

GET /user/{user_id}           -> plain-text user name
GET /actuator/httpexchanges   -> recorded exchanges, newest first
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from spanwise.users.service import UserService
from spanwise.web.exchanges import HttpExchangeRepository

logger = logging.getLogger("spanwise.web.routes")

router = APIRouter()


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_exchange_repository(request: Request) -> HttpExchangeRepository:
    return request.app.state.exchange_repository


@router.get("/user/{user_id}", response_class=PlainTextResponse)
async def user_name(
    user_id: str,
    user_service: UserService = Depends(get_user_service),
) -> str:
    logger.info("Got a request")
    return await user_service.user_name(user_id)


@router.get("/actuator/httpexchanges")
async def http_exchanges(
    repository: HttpExchangeRepository = Depends(get_exchange_repository),
) -> dict:
    return {"exchanges": [e.model_dump(mode="json") for e in repository.find_all()]}
