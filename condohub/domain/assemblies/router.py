"""Assembly router - FastAPI endpoints for assemblies, attendance and voting"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AgendaPointCreate,
    AgendaPointResponse,
    AssemblyCreate,
    AssemblyResponse,
    AssemblyUpdate,
    AttendeeCreate,
    AttendeeResponse,
    QuorumResponse,
    StandaloneAnswerCreate,
    StandaloneAnswerResponse,
    StandaloneOptionResult,
    StandaloneVoteCreate,
    StandaloneVoteResponseModel,
    TopicCreate,
    TopicResponse,
    TopicResultsResponse,
    VoteCreate,
    VoteOptionCreate,
    VoteOptionResponse,
    VoteResponse,
)
from .service import AssemblyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Assemblies"])


def get_assembly_service(db: Session = Depends(get_db)) -> AssemblyService:
    """Dependency injection for AssemblyService"""
    return AssemblyService(db)


# ============================================================================
# ASSEMBLIES
# ============================================================================


@router.get("/assemblies", response_model=list[AssemblyResponse])
async def list_assemblies(
    condominium_id: int,
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_assemblies(condominium_id, current_user, status)


@router.post("/assemblies", response_model=AssemblyResponse, status_code=201)
async def create_assembly(
    condominium_id: int,
    data: AssemblyCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.create_assembly(condominium_id, data, current_user)


@router.get("/assemblies/{assembly_id}", response_model=AssemblyResponse)
async def get_assembly(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.get_assembly(condominium_id, assembly_id, current_user)


@router.patch("/assemblies/{assembly_id}", response_model=AssemblyResponse)
async def update_assembly(
    condominium_id: int,
    assembly_id: int,
    data: AssemblyUpdate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.update_assembly(condominium_id, assembly_id, data, current_user)


@router.post("/assemblies/{assembly_id}/convocation")
async def send_convocation(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    """Notify every member of the condominium about the assembly"""
    return service.send_convocation(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/start", response_model=AssemblyResponse)
async def start_assembly(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.start_assembly(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/close", response_model=AssemblyResponse)
async def close_assembly(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.close_assembly(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/cancel", response_model=AssemblyResponse)
async def cancel_assembly(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.cancel_assembly(condominium_id, assembly_id, current_user)


# ============================================================================
# ATTENDANCE
# ============================================================================


@router.get("/assemblies/{assembly_id}/attendees", response_model=list[AttendeeResponse])
async def list_attendees(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_attendees(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/attendees", response_model=AttendeeResponse, status_code=201)
async def register_attendee(
    condominium_id: int,
    assembly_id: int,
    data: AttendeeCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.register_attendee(condominium_id, assembly_id, data, current_user)


@router.delete("/assemblies/{assembly_id}/attendees/{fraction_id}", status_code=204)
async def remove_attendee(
    condominium_id: int,
    assembly_id: int,
    fraction_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    service.remove_attendee(condominium_id, assembly_id, fraction_id, current_user)


@router.get("/assemblies/{assembly_id}/quorum", response_model=QuorumResponse)
async def get_quorum(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.calculate_quorum(condominium_id, assembly_id, current_user)


# ============================================================================
# TOPICS, AGENDA AND VOTES
# ============================================================================


@router.get("/assemblies/{assembly_id}/topics", response_model=list[TopicResponse])
async def list_topics(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_topics(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/topics", response_model=TopicResponse, status_code=201)
async def create_topic(
    condominium_id: int,
    assembly_id: int,
    data: TopicCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.create_topic(condominium_id, assembly_id, data, current_user)


@router.get("/assemblies/{assembly_id}/agenda", response_model=list[AgendaPointResponse])
async def list_agenda_points(
    condominium_id: int,
    assembly_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_agenda_points(condominium_id, assembly_id, current_user)


@router.post("/assemblies/{assembly_id}/agenda", response_model=AgendaPointResponse, status_code=201)
async def create_agenda_point(
    condominium_id: int,
    assembly_id: int,
    data: AgendaPointCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.create_agenda_point(condominium_id, assembly_id, data, current_user)


@router.post("/assemblies/{assembly_id}/topics/{topic_id}/votes", response_model=VoteResponse, status_code=201)
async def cast_vote(
    condominium_id: int,
    assembly_id: int,
    topic_id: int,
    data: VoteCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.cast_vote(condominium_id, assembly_id, topic_id, data, current_user)


@router.get("/assemblies/{assembly_id}/topics/{topic_id}/results", response_model=TopicResultsResponse)
async def topic_results(
    condominium_id: int,
    assembly_id: int,
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.topic_results(condominium_id, assembly_id, topic_id, current_user)


# ============================================================================
# STANDALONE VOTES
# ============================================================================


@router.get("/vote-options", response_model=list[VoteOptionResponse])
async def list_vote_options(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_vote_options(condominium_id, current_user)


@router.post("/vote-options", response_model=VoteOptionResponse, status_code=201)
async def create_vote_option(
    condominium_id: int,
    data: VoteOptionCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.create_vote_option(condominium_id, data, current_user)


@router.get("/votes", response_model=list[StandaloneVoteResponseModel])
async def list_standalone_votes(
    condominium_id: int,
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.list_standalone_votes(condominium_id, current_user, status)


@router.post("/votes", response_model=StandaloneVoteResponseModel, status_code=201)
async def create_standalone_vote(
    condominium_id: int,
    data: StandaloneVoteCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.create_standalone_vote(condominium_id, data, current_user)


@router.get("/votes/{vote_id}", response_model=StandaloneVoteResponseModel)
async def get_standalone_vote(
    condominium_id: int,
    vote_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.get_standalone_vote(condominium_id, vote_id, current_user)


@router.post("/votes/{vote_id}/open", response_model=StandaloneVoteResponseModel)
async def open_standalone_vote(
    condominium_id: int,
    vote_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.open_standalone_vote(condominium_id, vote_id, current_user)


@router.post("/votes/{vote_id}/close", response_model=StandaloneVoteResponseModel)
async def close_standalone_vote(
    condominium_id: int,
    vote_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.close_standalone_vote(condominium_id, vote_id, current_user)


@router.post("/votes/{vote_id}/responses", response_model=StandaloneAnswerResponse)
async def respond_standalone_vote(
    condominium_id: int,
    vote_id: int,
    data: StandaloneAnswerCreate,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.respond(condominium_id, vote_id, data, current_user)


@router.get("/votes/{vote_id}/results", response_model=list[StandaloneOptionResult])
async def standalone_results(
    condominium_id: int,
    vote_id: int,
    current_user: User = Depends(get_current_user),
    service: AssemblyService = Depends(get_assembly_service),
):
    return service.standalone_results(condominium_id, vote_id, current_user)
