from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from care_dispatch import DispatchService
from care_dispatch.permissions import Capability, Role, parse_role


@dataclass(frozen=True)
class StaffContext:
    role: Role


def get_service(request: Request) -> DispatchService:
    service = getattr(request.app.state, "dispatch_service", None)
    if not service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not initialized.",
        )
    return service


def get_staff(x_staff_role: str | None = Header(default=None)) -> StaffContext:
    # The role header is set by the gateway after it authenticates the caller.
    if not x_staff_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing staff role.",
        )
    try:
        role = parse_role(x_staff_role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown staff role.",
        )
    return StaffContext(role=role)


def require_capability(capability: Capability):
    def _dependency(
        staff: StaffContext = Depends(get_staff),
        service: DispatchService = Depends(get_service),
    ) -> StaffContext:
        if not service.permissions.allows(staff.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {staff.role.value} lacks {capability.value}.",
            )
        return staff

    return _dependency
