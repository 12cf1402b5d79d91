"""
Time Entry Endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from cardbill.container import Services
from cardbill.models import TimeEntry, TimeEntryCreate, TimeEntryUpdate, TimeTrackingSummary
from cardbill.routers import get_services

router = APIRouter()


@router.get("/cards/{card_id}/time-entries", response_model=List[TimeEntry])
async def list_time_entries(card_id: int, services: Services = Depends(get_services)):
    return await services.ledger.entries_for_card(card_id)


@router.get("/cards/{card_id}/time-summary", response_model=Optional[TimeTrackingSummary])
async def get_time_summary(card_id: int, services: Services = Depends(get_services)):
    return await services.ledger.summary(card_id)


@router.get("/time-summaries", response_model=List[TimeTrackingSummary])
async def get_time_summaries(
    card_ids: List[int] = Query(default=[]),
    services: Services = Depends(get_services),
):
    return await services.ledger.summaries(card_ids)


@router.post("/time-entries", response_model=TimeEntry, status_code=201)
async def create_time_entry(
    data: TimeEntryCreate,
    services: Services = Depends(get_services),
):
    return await services.ledger.create_entry(data)


@router.patch("/time-entries/{entry_id}", response_model=TimeEntry)
async def update_time_entry(
    entry_id: str,
    data: TimeEntryUpdate,
    services: Services = Depends(get_services),
):
    try:
        return await services.ledger.update_entry(entry_id, data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/time-entries/{entry_id}")
async def delete_time_entry(entry_id: str, services: Services = Depends(get_services)):
    await services.ledger.delete_entry(entry_id)
    return {"message": "Time entry deleted"}
