"""
Stripe Connect onboarding for property managers: account status with a
remediation link, and the OAuth return that links the connected account to properties.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.clients.stripe import StripeClient
from app.repositories.payment import StripeAccountRepository
from app.repositories.property import PropertyRepository
from app.repositories.user import UserRepository
from app.models.payment import ConnectAccountStatus, VerificationStatus, PropertyStripeAccount
from app.models.user import User, OnboardingStatus
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    InsufficientPermissionsError
)
from app.utils.security import resolve_origin
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


def account_ready(account: Dict[str, Any]) -> bool:
    return bool(account.get("charges_enabled")) and bool(account.get("payouts_enabled"))


def onboarding_snapshot(account: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "details_submitted": bool(account.get("details_submitted")),
        "charges_enabled": bool(account.get("charges_enabled")),
        "payouts_enabled": bool(account.get("payouts_enabled")),
        "capabilities": account.get("capabilities") or {},
        "requirements": account.get("requirements") or {},
    }


def apply_account_state(link: PropertyStripeAccount, account: Dict[str, Any]) -> None:
    """Mirror a Stripe account object onto a property's account link."""
    if account_ready(account):
        link.account_status = ConnectAccountStatus.COMPLETED
        link.verification_status = VerificationStatus.VERIFIED
    else:
        link.account_status = ConnectAccountStatus.PENDING
        link.verification_status = VerificationStatus.PENDING
    link.onboarding_data = onboarding_snapshot(account)


class StripeConnectService:

    def __init__(self, db_session: AsyncSession, stripe_client: Optional[StripeClient] = None):
        self.db = db_session
        self.stripe = stripe_client or StripeClient()
        self.user_repo = UserRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.stripe_account_repo = StripeAccountRepository(db_session)

    async def get_account_status(self, current_user: User, origin: Optional[str] = None) -> Dict[str, Any]:
        """
        Connected account state for the caller. A remediation link is only
        created while Stripe still has requirements outstanding.

        Raises:
            NotFoundError: If the caller has no connected account
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage payouts")
        if not current_user.stripe_connect_account_id:
            raise NotFoundError("Stripe Connect account")

        account_id = current_user.stripe_connect_account_id
        account = await self.stripe.retrieve_account(account_id)
        requirements = account.get("requirements") or {}

        remediation_link = None
        if requirements.get("currently_due") or requirements.get("eventually_due"):
            base_url = resolve_origin(origin)
            link = await self.stripe.create_account_link(
                account_id,
                refresh_url=f"{base_url}/settings",
                return_url=f"{base_url}/settings",
            )
            remediation_link = link.get("url")

        logger.info(
            f"Account status for {account_id}: charges={account.get('charges_enabled')} "
            f"payouts={account.get('payouts_enabled')} remediation={'yes' if remediation_link else 'no'}"
        )
        return {
            "account_id": account_id,
            "requirements": requirements,
            "payouts_enabled": bool(account.get("payouts_enabled")),
            "details_submitted": bool(account.get("details_submitted")),
            "charges_enabled": bool(account.get("charges_enabled")),
            "remediation_link": remediation_link,
        }

    async def complete_oauth(
        self,
        current_user: User,
        code: str,
        property_ids: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Exchange the OAuth code, store the connected account on the manager and
        route rent for the chosen properties (default: all of theirs) to it.
        """
        if not current_user.is_property_manager and not current_user.is_admin:
            raise InsufficientPermissionsError("connect a Stripe account")

        try:
            token = await self.stripe.exchange_oauth_code(code)
            account_id = token.get("stripe_user_id")
            if not account_id:
                raise BadRequestError("No connected account ID received")

            account = await self.stripe.retrieve_account(account_id)

            current_user.stripe_connect_account_id = account_id
            current_user.stripe_onboarding_status = (
                OnboardingStatus.COMPLETED if account.get("charges_enabled") else OnboardingStatus.IN_PROGRESS
            )
            await self.user_repo.save(current_user)

            if property_ids:
                target_ids = [ValidationUtils.validate_uuid(pid, "property_ids") for pid in property_ids]
                for property_id in target_ids:
                    property_obj = await self.property_repo.get_by_id(property_id)
                    if not property_obj:
                        raise NotFoundError("Property", str(property_id))
                    if not current_user.can_manage_property(property_obj.property_manager_id):
                        raise ForbiddenError("You don't have permission to manage this property")
            else:
                target_ids = await self.property_repo.get_managed_property_ids(current_user.id)

            for property_id in target_ids:
                await self._link_property(property_id, account_id, account)

            logger.info(f"Connected Stripe account {account_id} for {current_user.email} on {len(target_ids)} properties")
            return {
                "account_id": account_id,
                "onboarding_status": current_user.stripe_onboarding_status.value,
                "linked_properties": len(target_ids),
            }
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Connect OAuth failed for {current_user.id}: {e}")
            raise BadRequestError(f"Failed to complete Stripe connection: {str(e)}")

    async def _link_property(self, property_id: uuid.UUID, account_id: str, account: Dict[str, Any]) -> PropertyStripeAccount:
        current = await self.stripe_account_repo.get_active_for_property(property_id)
        if current and current.stripe_account_id != account_id:
            current.is_active = False
            await self.stripe_account_repo.save(current)

        link = await self.stripe_account_repo.get_link(property_id, account_id)
        if not link:
            link = PropertyStripeAccount(property_id=property_id, stripe_account_id=account_id)
        link.is_active = True
        apply_account_state(link, account)
        return await self.stripe_account_repo.save(link)

