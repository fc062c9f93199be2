"""Assembly service - Business logic for assemblies, quorum and voting"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Fraction, User
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
from ...services.notification_service import NotificationService
from ...shared.access import can_manage, require_access, require_manager, user_fraction_ids
from ..condominiums.repository import CondominiumRepository
from .repository import AssemblyRepository
from .schemas import (
    DEFAULT_TOPIC_OPTIONS,
    AgendaPointCreate,
    AssemblyCreate,
    AssemblyUpdate,
    AttendeeCreate,
    StandaloneAnswerCreate,
    StandaloneVoteCreate,
    TopicCreate,
    VoteCreate,
    VoteOptionCreate,
)

logger = logging.getLogger(__name__)

PERCENT = Decimal("0.01")


def percentage(part: Decimal, total: Decimal) -> Decimal:
    if not total:
        return Decimal("0.00")
    return (Decimal(part) / Decimal(total) * 100).quantize(PERCENT, rounding=ROUND_HALF_UP)


class AssemblyService:
    """Service layer for assembly business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AssemblyRepository()
        self.condominiums = CondominiumRepository()
        self.notifications = NotificationService(db)

    def _get_assembly(self, condominium_id: int, assembly_id: int) -> Assembly:
        assembly = self.repo.get_assembly(self.db, condominium_id, assembly_id)
        if not assembly:
            raise HTTPException(status_code=404, detail="Assembly not found")
        return assembly

    def _get_fraction(self, condominium_id: int, fraction_id: int) -> Fraction:
        fraction = self.condominiums.get_fraction(self.db, condominium_id, fraction_id)
        if not fraction or not fraction.is_active:
            raise HTTPException(status_code=404, detail="Fraction not found")
        return fraction

    def _check_voter(self, condominium_id: int, fraction_id: int, user: User) -> Fraction:
        """Managers vote on behalf of any fraction, residents only for their own"""
        condominium = require_access(self.db, user, condominium_id)
        fraction = self._get_fraction(condominium_id, fraction_id)
        if not can_manage(self.db, user, condominium) and fraction_id not in user_fraction_ids(
            self.db, user.id, condominium_id
        ):
            raise HTTPException(status_code=403, detail="You cannot vote for this fraction")
        return fraction

    # ------------------------------------------------------------------
    # Assemblies
    # ------------------------------------------------------------------

    def list_assemblies(self, condominium_id: int, user: User, status: Optional[str] = None) -> list[Assembly]:
        require_access(self.db, user, condominium_id)
        return self.repo.list_assemblies(self.db, condominium_id, status)

    def get_assembly(self, condominium_id: int, assembly_id: int, user: User) -> Assembly:
        require_access(self.db, user, condominium_id)
        return self._get_assembly(condominium_id, assembly_id)

    def create_assembly(self, condominium_id: int, data: AssemblyCreate, user: User) -> Assembly:
        require_manager(self.db, user, condominium_id)
        assembly = Assembly(condominium_id=condominium_id, created_by=user.id, status="scheduled", **data.model_dump())
        self.db.add(assembly)
        self.db.commit()
        self.db.refresh(assembly)
        logger.info(f"🏛️ Assembly {assembly.id} scheduled for condominium {condominium_id}")
        return assembly

    def update_assembly(self, condominium_id: int, assembly_id: int, data: AssemblyUpdate, user: User) -> Assembly:
        require_manager(self.db, user, condominium_id)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status != "scheduled":
            raise HTTPException(status_code=400, detail="Only scheduled assemblies can be edited")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(assembly, field, value)
        self.db.commit()
        self.db.refresh(assembly)
        return assembly

    def send_convocation(self, condominium_id: int, assembly_id: int, user: User) -> dict:
        require_manager(self.db, user, condominium_id)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status != "scheduled":
            raise HTTPException(status_code=400, detail="Convocations are only sent for scheduled assemblies")
        sent = self.notifications.notify_assembly_convocation(assembly)
        assembly.convocation_sent_at = datetime.utcnow()
        self.db.commit()
        return {"assembly_id": assembly.id, "notified": sent}

    def _transition(self, condominium_id: int, assembly_id: int, user: User, expected: str, target: str) -> Assembly:
        require_manager(self.db, user, condominium_id)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status != expected:
            raise HTTPException(status_code=400, detail=f"Assembly is {assembly.status}, expected {expected}")
        assembly.status = target
        if target == "in_progress":
            assembly.started_at = datetime.utcnow()
        else:
            assembly.closed_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(assembly)
        logger.info(f"🏛️ Assembly {assembly.id}: {expected} -> {target}")
        return assembly

    def start_assembly(self, condominium_id: int, assembly_id: int, user: User) -> Assembly:
        return self._transition(condominium_id, assembly_id, user, "scheduled", "in_progress")

    def close_assembly(self, condominium_id: int, assembly_id: int, user: User) -> Assembly:
        return self._transition(condominium_id, assembly_id, user, "in_progress", "closed")

    def cancel_assembly(self, condominium_id: int, assembly_id: int, user: User) -> Assembly:
        return self._transition(condominium_id, assembly_id, user, "scheduled", "canceled")

    # ------------------------------------------------------------------
    # Attendance and quorum
    # ------------------------------------------------------------------

    def list_attendees(self, condominium_id: int, assembly_id: int, user: User) -> list[AssemblyAttendee]:
        self.get_assembly(condominium_id, assembly_id, user)
        return (
            self.db.query(AssemblyAttendee)
            .filter(AssemblyAttendee.assembly_id == assembly_id)
            .order_by(AssemblyAttendee.id)
            .all()
        )

    def register_attendee(
        self, condominium_id: int, assembly_id: int, data: AttendeeCreate, user: User
    ) -> AssemblyAttendee:
        require_manager(self.db, user, condominium_id)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status in {"closed", "canceled"}:
            raise HTTPException(status_code=400, detail=f"Assembly is {assembly.status}")
        self._get_fraction(condominium_id, data.fraction_id)
        if self.repo.get_attendee(self.db, assembly_id, data.fraction_id):
            raise HTTPException(status_code=409, detail="Fraction already registered as attendee")
        if data.attendance_type == "represented" and not data.representative_name:
            raise HTTPException(status_code=400, detail="representative_name is required for represented fractions")

        attendee = AssemblyAttendee(assembly_id=assembly_id, **data.model_dump())
        self.db.add(attendee)
        self.db.commit()
        self.db.refresh(attendee)
        return attendee

    def remove_attendee(self, condominium_id: int, assembly_id: int, fraction_id: int, user: User) -> None:
        require_manager(self.db, user, condominium_id)
        self._get_assembly(condominium_id, assembly_id)
        attendee = self.repo.get_attendee(self.db, assembly_id, fraction_id)
        if not attendee:
            raise HTTPException(status_code=404, detail="Attendee not found")
        self.db.delete(attendee)
        self.db.commit()

    def calculate_quorum(self, condominium_id: int, assembly_id: int, user: User) -> dict:
        """Attending permillage against the condominium's active permillage"""
        assembly = self.get_assembly(condominium_id, assembly_id, user)
        total = self.condominiums.total_permillage(self.db, condominium_id)
        attended = self.repo.attended_permillage(self.db, assembly_id)
        pct = percentage(attended, total)
        required = Decimal(str(assembly.quorum_percentage))
        return {
            "total_permillage": total,
            "attended_permillage": attended,
            "percentage": pct,
            "required_percentage": required,
            "reached": total > 0 and pct >= required,
        }

    # ------------------------------------------------------------------
    # Topics and agenda
    # ------------------------------------------------------------------

    def list_topics(self, condominium_id: int, assembly_id: int, user: User) -> list[AssemblyVoteTopic]:
        return self.get_assembly(condominium_id, assembly_id, user).topics

    def create_topic(self, condominium_id: int, assembly_id: int, data: TopicCreate, user: User) -> AssemblyVoteTopic:
        require_manager(self.db, user, condominium_id)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status in {"closed", "canceled"}:
            raise HTTPException(status_code=400, detail=f"Assembly is {assembly.status}")
        topic = AssemblyVoteTopic(assembly_id=assembly_id, **data.model_dump())
        self.db.add(topic)
        self.db.commit()
        self.db.refresh(topic)
        return topic

    def _agenda_point_dict(self, point: AssemblyAgendaPoint) -> dict:
        return {
            "id": point.id,
            "assembly_id": point.assembly_id,
            "title": point.title,
            "body": point.body,
            "order_index": point.order_index,
            "vote_topic_ids": self.repo.agenda_topic_ids(self.db, point.id),
        }

    def list_agenda_points(self, condominium_id: int, assembly_id: int, user: User) -> list[dict]:
        self.get_assembly(condominium_id, assembly_id, user)
        return [self._agenda_point_dict(p) for p in self.repo.list_agenda_points(self.db, assembly_id)]

    def create_agenda_point(self, condominium_id: int, assembly_id: int, data: AgendaPointCreate, user: User) -> dict:
        require_manager(self.db, user, condominium_id)
        self._get_assembly(condominium_id, assembly_id)
        topic_ids = list(dict.fromkeys(data.vote_topic_ids))
        for topic_id in topic_ids:
            if not self.repo.get_topic(self.db, assembly_id, topic_id):
                raise HTTPException(status_code=404, detail=f"Vote topic {topic_id} not found")

        point = AssemblyAgendaPoint(
            assembly_id=assembly_id,
            title=data.title,
            body=data.body,
            order_index=data.order_index,
            vote_topic_id=topic_ids[0] if topic_ids else None,
        )
        self.db.add(point)
        self.db.flush()
        for topic_id in topic_ids:
            self.db.add(AssemblyAgendaPointVoteTopic(agenda_point_id=point.id, vote_topic_id=topic_id))
        self.db.commit()
        self.db.refresh(point)
        return self._agenda_point_dict(point)

    # ------------------------------------------------------------------
    # Assembly votes
    # ------------------------------------------------------------------

    def cast_vote(
        self, condominium_id: int, assembly_id: int, topic_id: int, data: VoteCreate, user: User
    ) -> AssemblyVote:
        fraction = self._check_voter(condominium_id, data.fraction_id, user)
        assembly = self._get_assembly(condominium_id, assembly_id)
        if assembly.status != "in_progress":
            raise HTTPException(status_code=400, detail="Votes are only accepted while the assembly is in progress")

        topic = self.repo.get_topic(self.db, assembly_id, topic_id)
        if not topic or not topic.is_active:
            raise HTTPException(status_code=404, detail="Vote topic not found")
        options = topic.options or DEFAULT_TOPIC_OPTIONS
        if data.vote_option not in options:
            raise HTTPException(status_code=400, detail=f"Invalid option. Allowed: {', '.join(options)}")
        if self.repo.get_vote(self.db, topic_id, data.fraction_id):
            raise HTTPException(status_code=409, detail="This fraction has already voted on this topic")

        vote = AssemblyVote(
            assembly_id=assembly_id,
            topic_id=topic_id,
            fraction_id=fraction.id,
            user_id=user.id,
            vote_option=data.vote_option,
            weighted_value=fraction.permillage,
            notes=data.notes,
        )
        self.db.add(vote)
        self.db.commit()
        self.db.refresh(vote)
        logger.info(f"🗳️ Fraction {fraction.id} voted '{data.vote_option}' on topic {topic_id}")
        return vote

    def topic_results(self, condominium_id: int, assembly_id: int, topic_id: int, user: User) -> dict:
        """Votes grouped by option with permillage, count and share of the voted permillage"""
        self.get_assembly(condominium_id, assembly_id, user)
        topic = self.repo.get_topic(self.db, assembly_id, topic_id)
        if not topic:
            raise HTTPException(status_code=404, detail="Vote topic not found")

        options: dict[str, dict] = {}
        for vote in self.repo.list_votes(self.db, topic_id):
            entry = options.setdefault(vote.vote_option, {"permillage": Decimal("0"), "count": 0})
            entry["permillage"] += Decimal(str(vote.weighted_value))
            entry["count"] += 1

        total = sum((entry["permillage"] for entry in options.values()), Decimal("0"))
        for entry in options.values():
            entry["percentage"] = percentage(entry["permillage"], total)

        return {
            "topic_id": topic.id,
            "title": topic.title,
            "options": options,
            "total_permillage": total,
            "total_votes": sum(entry["count"] for entry in options.values()),
        }

    # ------------------------------------------------------------------
    # Vote options and standalone votes
    # ------------------------------------------------------------------

    def ensure_default_options(self, condominium_id: int) -> list[VoteOption]:
        options = self.repo.list_vote_options(self.db, condominium_id, active_only=False)
        if options:
            return [o for o in options if o.is_active]
        for index, label in enumerate(DEFAULT_TOPIC_OPTIONS):
            self.db.add(VoteOption(condominium_id=condominium_id, option_label=label, order_index=index, is_default=True))
        self.db.flush()
        logger.info(f"🗳️ Default vote options created for condominium {condominium_id}")
        return self.repo.list_vote_options(self.db, condominium_id)

    def list_vote_options(self, condominium_id: int, user: User) -> list[VoteOption]:
        require_access(self.db, user, condominium_id)
        options = self.ensure_default_options(condominium_id)
        self.db.commit()
        return options

    def create_vote_option(self, condominium_id: int, data: VoteOptionCreate, user: User) -> VoteOption:
        require_manager(self.db, user, condominium_id)
        self.ensure_default_options(condominium_id)
        option = VoteOption(condominium_id=condominium_id, **data.model_dump())
        self.db.add(option)
        self.db.commit()
        self.db.refresh(option)
        return option

    def _get_standalone(self, condominium_id: int, vote_id: int) -> StandaloneVote:
        vote = self.repo.get_standalone_vote(self.db, condominium_id, vote_id)
        if not vote:
            raise HTTPException(status_code=404, detail="Vote not found")
        return vote

    def _allowed_options(self, vote: StandaloneVote) -> list[VoteOption]:
        options = self.repo.list_vote_options(self.db, vote.condominium_id)
        if vote.allowed_options:
            allowed = set(vote.allowed_options)
            options = [o for o in options if o.id in allowed]
        return options

    def list_standalone_votes(self, condominium_id: int, user: User, status: Optional[str] = None) -> list:
        require_access(self.db, user, condominium_id)
        return self.repo.list_standalone_votes(self.db, condominium_id, status)

    def get_standalone_vote(self, condominium_id: int, vote_id: int, user: User) -> StandaloneVote:
        require_access(self.db, user, condominium_id)
        return self._get_standalone(condominium_id, vote_id)

    def create_standalone_vote(self, condominium_id: int, data: StandaloneVoteCreate, user: User) -> StandaloneVote:
        require_manager(self.db, user, condominium_id)
        options = {o.id for o in self.ensure_default_options(condominium_id)}
        allowed = list(dict.fromkeys(data.allowed_options)) if data.allowed_options else None
        if allowed:
            unknown = [option_id for option_id in allowed if option_id not in options]
            if unknown:
                raise HTTPException(status_code=400, detail=f"Unknown vote options: {unknown}")

        vote = StandaloneVote(
            condominium_id=condominium_id,
            title=data.title,
            description=data.description,
            allowed_options=allowed,
            status="draft",
            created_by=user.id,
        )
        self.db.add(vote)
        self.db.commit()
        self.db.refresh(vote)
        return vote

    def open_standalone_vote(self, condominium_id: int, vote_id: int, user: User) -> StandaloneVote:
        require_manager(self.db, user, condominium_id)
        vote = self._get_standalone(condominium_id, vote_id)
        if vote.status != "draft":
            raise HTTPException(status_code=400, detail="Only draft votes can be opened")
        vote.status = "open"
        vote.voting_started_at = datetime.utcnow()
        self.notifications.notify_vote_opened(vote)
        self.db.commit()
        self.db.refresh(vote)
        return vote

    def close_standalone_vote(self, condominium_id: int, vote_id: int, user: User) -> StandaloneVote:
        require_manager(self.db, user, condominium_id)
        vote = self._get_standalone(condominium_id, vote_id)
        if vote.status != "open":
            raise HTTPException(status_code=400, detail="Only open votes can be closed")
        vote.status = "closed"
        vote.voting_ended_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(vote)
        return vote

    def respond(
        self, condominium_id: int, vote_id: int, data: StandaloneAnswerCreate, user: User
    ) -> StandaloneVoteResponse:
        """Record a fraction's answer; answering again replaces it while the vote is open"""
        fraction = self._check_voter(condominium_id, data.fraction_id, user)
        vote = self._get_standalone(condominium_id, vote_id)
        if vote.status != "open":
            raise HTTPException(status_code=400, detail="This vote is not open")
        if data.vote_option_id not in {o.id for o in self._allowed_options(vote)}:
            raise HTTPException(status_code=400, detail="Option not allowed for this vote")

        response = self.repo.get_response(self.db, vote.id, fraction.id)
        if response is None:
            response = StandaloneVoteResponse(standalone_vote_id=vote.id, fraction_id=fraction.id)
            self.db.add(response)
        response.user_id = user.id
        response.vote_option_id = data.vote_option_id
        response.weighted_value = fraction.permillage
        response.notes = data.notes
        self.db.commit()
        self.db.refresh(response)
        return response

    def standalone_results(self, condominium_id: int, vote_id: int, user: User) -> list[dict]:
        """Count and weighted total for every allowed option, in option order"""
        vote = self.get_standalone_vote(condominium_id, vote_id, user)
        fractions = {f.id: f.identifier for f in self.condominiums.list_fractions(self.db, condominium_id, True)}

        results = {
            o.id: {
                "option_id": o.id,
                "option_label": o.option_label,
                "vote_count": 0,
                "weighted_total": Decimal("0"),
                "fractions_voted": [],
            }
            for o in self._allowed_options(vote)
        }
        for response in self.repo.list_responses(self.db, vote.id):
            entry = results.get(response.vote_option_id)
            if entry is None:
                continue
            entry["vote_count"] += 1
            entry["weighted_total"] += Decimal(str(response.weighted_value))
            entry["fractions_voted"].append(fractions.get(response.fraction_id, str(response.fraction_id)))

        for entry in results.values():
            entry["fractions_voted"].sort()
        return list(results.values())
