from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditEvent
from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import Actor, PermissionChecker
from app.core.security import create_access_token
from app.models.activity_log import ActivityAction, EntityType
from app.models.supplier import Supplier
from app.models.user import RoleAssignment, UserRole
from app.repositories.base import storage_errors
from app.services.activity_log_service import ActivityLogService
from app.services.email_service import mask_email
from app.services.otp_service import EmailOTPService, normalize_email

logger = logging.getLogger(__name__)


class AuthService:
    """
    Email OTP login and role resolution.

    Roles come from the role_assignments table; an active supplier whose
    email matches logs in as SUPPLIER. Anyone else is rejected.
    """

    def __init__(self, db: AsyncSession, otp_service: Optional[EmailOTPService] = None):
        self.db = db
        self.otp_service = otp_service or EmailOTPService(db)
        self.activity = ActivityLogService(db)

    async def resolve_actor(self, email: str) -> Optional[Actor]:
        """Map an email to an Actor, or None if it has no dashboard access."""
        email = normalize_email(email)

        with storage_errors("resolve user role"):
            result = await self.db.execute(
                select(RoleAssignment).where(
                    func.lower(RoleAssignment.email) == email,
                    RoleAssignment.is_active == True,  # noqa: E712
                )
            )
            assignment = result.scalar_one_or_none()
            if assignment is not None:
                return Actor(
                    email=email,
                    name=assignment.name,
                    role=assignment.role,
                    supplier_id=assignment.supplier_id,
                )

            result = await self.db.execute(
                select(Supplier).where(
                    func.lower(Supplier.email) == email,
                    Supplier.active == True,  # noqa: E712
                )
            )
            supplier = result.scalar_one_or_none()

        if supplier is not None:
            return Actor(email=email, name=supplier.name, role=UserRole.SUPPLIER.value, supplier_id=supplier.id)
        return None

    async def send_login_code(self, email: str) -> Tuple[bool, str]:
        """Unknown emails get the same answer as known ones but no code is sent."""
        actor = await self.resolve_actor(email)
        if actor is None:
            logger.warning(f"Login code requested for unknown email {mask_email(email)}")
            return True, "OTP sent successfully"
        return await self.otp_service.issue_code(email)

    async def login(
        self,
        email: str,
        code: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[Optional[Actor], Optional[str], str]:
        """
        Verify a code and issue an access token.

        Returns:
            Tuple of (actor, access_token, message); actor and token are None on failure
        """
        email = normalize_email(email)
        ok, message = await self.otp_service.verify_code(email, code)
        actor = await self.resolve_actor(email) if ok else None

        if ok and actor is None:
            ok, message = False, "This email does not have dashboard access"

        if not ok:
            await self.activity.dispatch(
                Actor(email=email, name=email, role="UNKNOWN"),
                [_login_event(ActivityAction.LOGIN_FAILED, f"Failed login for {email}: {message}")],
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return None, None, message

        token = create_access_token(
            subject=actor.email,
            additional_claims={
                "role": actor.role,
                "name": actor.name,
                "supplier_id": str(actor.supplier_id) if actor.supplier_id else None,
            },
        )
        await self.activity.dispatch(
            actor,
            [_login_event(ActivityAction.LOGIN, f"{actor.name} logged in")],
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Login successful for {mask_email(actor.email)} as {actor.role}")
        return actor, token, message

    async def logout(self, actor: Actor, ip_address: Optional[str] = None) -> None:
        await self.activity.dispatch(
            actor,
            [_login_event(ActivityAction.LOGOUT, f"{actor.name} logged out")],
            ip_address=ip_address,
        )

    # ==================== ROLE ASSIGNMENTS ====================

    async def list_assignments(self, actor: Actor) -> List[RoleAssignment]:
        PermissionChecker(actor).require_owner("view team members")
        with storage_errors("list team members"):
            result = await self.db.execute(select(RoleAssignment).order_by(RoleAssignment.created_at))
            return list(result.scalars().all())

    async def assign_role(
        self,
        actor: Actor,
        email: str,
        name: str,
        role: str,
        supplier_id: Optional[uuid.UUID] = None,
    ) -> RoleAssignment:
        PermissionChecker(actor).require_owner("manage team members")

        if role not in {r.value for r in UserRole}:
            raise ValidationError(f"Unknown role '{role}'", details={"role": role})
        if role == UserRole.SUPPLIER.value and supplier_id is None:
            raise ValidationError("Supplier accounts need a supplier_id")
        if role != UserRole.SUPPLIER.value:
            supplier_id = None

        assignment = RoleAssignment(
            email=normalize_email(email),
            name=name,
            role=role,
            supplier_id=supplier_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(assignment)
                await self.db.flush()
        except IntegrityError as e:
            raise ValidationError(
                f"{assignment.email} already has a role",
                details={"email": assignment.email},
            ) from e

        logger.info(f"Role {role} assigned to {mask_email(assignment.email)}")
        return assignment

    async def remove_assignment(self, actor: Actor, assignment_id: uuid.UUID) -> None:
        PermissionChecker(actor).require_owner("manage team members")
        with storage_errors("remove team member"):
            assignment = await self.db.get(RoleAssignment, assignment_id)
            if assignment is None:
                raise NotFoundError("Role assignment", str(assignment_id))
            if assignment.email == actor.email:
                raise ValidationError("You cannot remove your own access")
            await self.db.delete(assignment)
            await self.db.flush()

    async def ensure_owner(self, email: str, name: str) -> bool:
        """Seed the owner account. Returns True if it was created."""
        email = normalize_email(email)
        with storage_errors("seed owner"):
            result = await self.db.execute(select(RoleAssignment).where(RoleAssignment.email == email))
            if result.scalar_one_or_none() is not None:
                return False
            self.db.add(RoleAssignment(email=email, name=name, role=UserRole.OWNER.value))
            await self.db.flush()
        logger.info(f"Seeded owner account {mask_email(email)}")
        return True


def _login_event(action: ActivityAction, description: str) -> AuditEvent:
    return AuditEvent(action_type=action.value, description=description, entity_type=EntityType.USER.value)
