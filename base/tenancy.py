"""
Tenant resolution for request users.

A platform operator carries no company and sees every tenant; any other user
must belong to a company or the call fails fast.
"""

from dataclasses import dataclass
from typing import Optional

from . import exceptions


@dataclass(frozen=True)
class Tenant:
    company_id: Optional[int]
    user_id: Optional[int] = None

    @property
    def is_platform_operator(self):
        return self.company_id is None

    def scope(self, queryset, field="company_id"):
        """Restrict a queryset to this tenant"""
        if self.is_platform_operator:
            return queryset
        return queryset.filter(**{field: self.company_id})

    def company_for_write(self, company_id=None):
        """
        Company id to stamp on new records.

        Platform operators must name the company explicitly.
        """
        if not self.is_platform_operator:
            if company_id and int(company_id) != self.company_id:
                raise exceptions.ValidationError(
                    "Cannot write records for another company."
                )
            return self.company_id
        if not company_id:
            raise exceptions.ValidationError(
                "A company must be specified when acting as platform operator."
            )
        return int(company_id)

    def check_owns(self, company_id):
        if not self.is_platform_operator and company_id != self.company_id:
            raise exceptions.NotFoundError("Record not found for your company.")


def resolve_tenant(user):
    if user is None or not getattr(user, "is_authenticated", False):
        raise exceptions.ValidationError("User not authenticated.")

    if user.is_platform_operator:
        return Tenant(company_id=None, user_id=user.pk)

    if not user.company_id:
        raise exceptions.ValidationError("User is not associated with a company.")

    return Tenant(company_id=user.company_id, user_id=user.pk)
