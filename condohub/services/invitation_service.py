"""
Condominium invitations.

Inviting an email that already has an account links that user straight away.
Otherwise an invitation row is stored with a signed token that expires after
INVITATION_EXPIRE_DAYS; accepting it registers (or links) the user as a member
of the condominium and, when given, of the fraction.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import INVITATION_EXPIRE_DAYS
from ..models import CondominiumUser, Fraction, Invitation, User
from ..security_utils import generate_timed_token, hash_password, verify_timed_token

logger = logging.getLogger(__name__)

INVITATION_SALT = "condominium-invitation"
INVITATION_ROLES = ("admin", "condomino")


class InvitationService:
    def __init__(self, db: Session):
        self.db = db

    def _link_user(self, condominium_id: int, fraction_id: Optional[int], user_id: int, role: str) -> CondominiumUser:
        """Membership for the user, reusing an existing one for the same fraction"""
        membership = (
            self.db.query(CondominiumUser)
            .filter(
                CondominiumUser.condominium_id == condominium_id,
                CondominiumUser.user_id == user_id,
                CondominiumUser.fraction_id == fraction_id if fraction_id else CondominiumUser.fraction_id.is_(None),
                CondominiumUser.ended_at.is_(None),
            )
            .first()
        )
        if membership:
            if role == "admin" and membership.role != "admin":
                membership.role = "admin"
            return membership

        has_primary = (
            fraction_id is not None
            and self.db.query(CondominiumUser.id)
            .filter(CondominiumUser.fraction_id == fraction_id, CondominiumUser.is_primary.is_(True))
            .first()
            is not None
        )
        membership = CondominiumUser(
            condominium_id=condominium_id,
            user_id=user_id,
            fraction_id=fraction_id,
            role=role,
            is_primary=fraction_id is not None and not has_primary,
            started_at=datetime.utcnow().date(),
        )
        self.db.add(membership)
        self.db.flush()
        return membership

    def invite(
        self,
        condominium_id: int,
        email: str,
        name: Optional[str] = None,
        fraction_id: Optional[int] = None,
        role: str = "condomino",
    ) -> dict:
        """
        Invite an email to a condominium.

        Returns:
            {"linked": True, "user_id": ...} when the account already existed,
            otherwise {"linked": False, "invitation": Invitation, "token": str}
        """
        if role not in INVITATION_ROLES:
            raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
        if fraction_id is not None:
            fraction = self.db.get(Fraction, fraction_id)
            if not fraction or fraction.condominium_id != condominium_id:
                raise HTTPException(status_code=404, detail="Fraction not found")

        email = email.strip().lower()
        user = self.db.query(User).filter(User.email == email).first()
        if user:
            self._link_user(condominium_id, fraction_id, user.id, role)
            self.db.commit()
            logger.info(f"🔗 Existing user {user.id} linked to condominium {condominium_id}")
            return {"linked": True, "user_id": user.id}

        invitation = Invitation(
            condominium_id=condominium_id,
            fraction_id=fraction_id,
            email=email,
            name=name,
            role=role,
            expires_at=datetime.utcnow() + timedelta(days=INVITATION_EXPIRE_DAYS),
        )
        self.db.add(invitation)
        self.db.flush()

        invitation.token = generate_timed_token({"invitation_id": invitation.id, "email": email}, salt=INVITATION_SALT)
        self.db.commit()
        self.db.refresh(invitation)

        logger.info(f"✉️ Invitation {invitation.id} created for {email} (condominium {condominium_id})")
        return {"linked": False, "invitation": invitation, "token": invitation.token}

    def get_valid_invitation(self, token: str) -> Invitation:
        data = verify_timed_token(token, max_age=INVITATION_EXPIRE_DAYS * 86400, salt=INVITATION_SALT)
        if not data:
            raise HTTPException(status_code=400, detail="Invalid or expired invitation")

        invitation = self.db.get(Invitation, data.get("invitation_id"))
        if not invitation or invitation.token != token or invitation.email != data.get("email"):
            raise HTTPException(status_code=400, detail="Invalid or expired invitation")
        if invitation.accepted_at is not None:
            raise HTTPException(status_code=400, detail="Invitation already used")
        if invitation.expires_at and invitation.expires_at < datetime.utcnow():
            raise HTTPException(status_code=400, detail="Invalid or expired invitation")
        return invitation

    def accept(self, token: str, name: Optional[str] = None, password: Optional[str] = None) -> User:
        """Register or link the invited user; the token can be used once"""
        invitation = self.get_valid_invitation(token)

        user = self.db.query(User).filter(User.email == invitation.email).first()
        if not user:
            if not password:
                raise HTTPException(status_code=400, detail="A password is required to create the account")
            user = User(
                name=name or invitation.name or invitation.email,
                email=invitation.email,
                password_hash=hash_password(password),
                role="condomino",
                phone=invitation.phone,
            )
            self.db.add(user)
            self.db.flush()
            logger.info(f"👤 Created account {user.id} from invitation {invitation.id}")

        self._link_user(invitation.condominium_id, invitation.fraction_id, user.id, invitation.role)
        invitation.accepted_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"✅ Invitation {invitation.id} accepted by user {user.id}")
        return user

    def list_pending(self, condominium_id: int) -> list[Invitation]:
        return (
            self.db.query(Invitation)
            .filter(Invitation.condominium_id == condominium_id, Invitation.accepted_at.is_(None))
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
            .all()
        )

    def revoke(self, condominium_id: int, invitation_id: int) -> None:
        invitation = self.db.get(Invitation, invitation_id)
        if not invitation or invitation.condominium_id != condominium_id:
            raise HTTPException(status_code=404, detail="Invitation not found")
        if invitation.accepted_at is not None:
            raise HTTPException(status_code=400, detail="Invitation was already accepted")
        self.db.delete(invitation)
        self.db.commit()
        logger.info(f"🗑️ Invitation {invitation_id} revoked")
