"""
Board Browsing Endpoints
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cardbill.billing import card_state_label
from cardbill.container import Services
from cardbill.models import Board, Card, Space
from cardbill.routers import get_services

router = APIRouter()


class CardRowResponse(BaseModel):
    card: Card
    state_label: str
    billable: bool
    api_minutes: int
    manual_minutes: int
    total_minutes: int


@router.get("/spaces", response_model=List[Space])
async def list_spaces(services: Services = Depends(get_services)):
    return await services.browser.spaces()


@router.get("/spaces/{space_id}/boards", response_model=List[Board])
async def list_boards(space_id: int, services: Services = Depends(get_services)):
    return await services.browser.boards(space_id)


@router.get("/boards/{board_id}", response_model=Board)
async def get_board(board_id: int, services: Services = Depends(get_services)):
    return await services.browser.board_detail(board_id)


@router.get("/boards/{board_id}/cards", response_model=List[CardRowResponse])
async def list_cards(board_id: int, services: Services = Depends(get_services)):
    """Live cards of a board with API time, manual time and their sum."""
    rows = await services.browser.card_rows(board_id)
    return [
        CardRowResponse(
            card=row.card,
            state_label=card_state_label(row.card.state),
            billable=row.card.is_billable,
            api_minutes=row.api_minutes,
            manual_minutes=row.manual_minutes,
            total_minutes=row.total_minutes,
        )
        for row in rows
    ]
