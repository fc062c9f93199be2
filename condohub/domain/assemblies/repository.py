"""Assembly repository - Data access layer for assemblies and votes"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Fraction
from ...models_assembly import (
    Assembly,
    AssemblyAgendaPoint,
    AssemblyAgendaPointVoteTopic,
    AssemblyAttendee,
    AssemblyVote,
    AssemblyVoteTopic,
    StandaloneVote,
    StandaloneVoteResponse,
    VoteOption,
)


class AssemblyRepository:
    """Repository for assembly and voting data access"""

    @staticmethod
    def list_assemblies(db: Session, condominium_id: int, status: Optional[str] = None) -> list[Assembly]:
        query = db.query(Assembly).filter(Assembly.condominium_id == condominium_id)
        if status:
            query = query.filter(Assembly.status == status)
        return query.order_by(Assembly.scheduled_date.desc()).all()

    @staticmethod
    def get_assembly(db: Session, condominium_id: int, assembly_id: int) -> Optional[Assembly]:
        return (
            db.query(Assembly)
            .filter(Assembly.id == assembly_id, Assembly.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def get_attendee(db: Session, assembly_id: int, fraction_id: int) -> Optional[AssemblyAttendee]:
        return (
            db.query(AssemblyAttendee)
            .filter(AssemblyAttendee.assembly_id == assembly_id, AssemblyAttendee.fraction_id == fraction_id)
            .first()
        )

    @staticmethod
    def attended_permillage(db: Session, assembly_id: int) -> Decimal:
        total = (
            db.query(func.coalesce(func.sum(Fraction.permillage), 0))
            .join(AssemblyAttendee, AssemblyAttendee.fraction_id == Fraction.id)
            .filter(AssemblyAttendee.assembly_id == assembly_id)
            .scalar()
        )
        return Decimal(str(total or 0))

    @staticmethod
    def get_topic(db: Session, assembly_id: int, topic_id: int) -> Optional[AssemblyVoteTopic]:
        return (
            db.query(AssemblyVoteTopic)
            .filter(AssemblyVoteTopic.id == topic_id, AssemblyVoteTopic.assembly_id == assembly_id)
            .first()
        )

    @staticmethod
    def get_vote(db: Session, topic_id: int, fraction_id: int) -> Optional[AssemblyVote]:
        return (
            db.query(AssemblyVote)
            .filter(AssemblyVote.topic_id == topic_id, AssemblyVote.fraction_id == fraction_id)
            .first()
        )

    @staticmethod
    def list_votes(db: Session, topic_id: int) -> list[AssemblyVote]:
        return db.query(AssemblyVote).filter(AssemblyVote.topic_id == topic_id).order_by(AssemblyVote.id).all()

    @staticmethod
    def list_agenda_points(db: Session, assembly_id: int) -> list[AssemblyAgendaPoint]:
        return (
            db.query(AssemblyAgendaPoint)
            .filter(AssemblyAgendaPoint.assembly_id == assembly_id)
            .order_by(AssemblyAgendaPoint.order_index, AssemblyAgendaPoint.id)
            .all()
        )

    @staticmethod
    def agenda_topic_ids(db: Session, agenda_point_id: int) -> list[int]:
        rows = (
            db.query(AssemblyAgendaPointVoteTopic.vote_topic_id)
            .filter(AssemblyAgendaPointVoteTopic.agenda_point_id == agenda_point_id)
            .all()
        )
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Standalone votes
    # ------------------------------------------------------------------

    @staticmethod
    def list_vote_options(db: Session, condominium_id: int, active_only: bool = True) -> list[VoteOption]:
        query = db.query(VoteOption).filter(VoteOption.condominium_id == condominium_id)
        if active_only:
            query = query.filter(VoteOption.is_active.is_(True))
        return query.order_by(VoteOption.order_index, VoteOption.id).all()

    @staticmethod
    def list_standalone_votes(db: Session, condominium_id: int, status: Optional[str] = None) -> list[StandaloneVote]:
        query = db.query(StandaloneVote).filter(StandaloneVote.condominium_id == condominium_id)
        if status:
            query = query.filter(StandaloneVote.status == status)
        return query.order_by(StandaloneVote.created_at.desc(), StandaloneVote.id.desc()).all()

    @staticmethod
    def get_standalone_vote(db: Session, condominium_id: int, vote_id: int) -> Optional[StandaloneVote]:
        return (
            db.query(StandaloneVote)
            .filter(StandaloneVote.id == vote_id, StandaloneVote.condominium_id == condominium_id)
            .first()
        )

    @staticmethod
    def get_response(db: Session, vote_id: int, fraction_id: int) -> Optional[StandaloneVoteResponse]:
        return (
            db.query(StandaloneVoteResponse)
            .filter(
                StandaloneVoteResponse.standalone_vote_id == vote_id,
                StandaloneVoteResponse.fraction_id == fraction_id,
            )
            .first()
        )

    @staticmethod
    def list_responses(db: Session, vote_id: int) -> list[StandaloneVoteResponse]:
        return (
            db.query(StandaloneVoteResponse)
            .filter(StandaloneVoteResponse.standalone_vote_id == vote_id)
            .order_by(StandaloneVoteResponse.id)
            .all()
        )
