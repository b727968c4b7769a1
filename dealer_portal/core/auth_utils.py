"""Authorization helpers for dealer-scoped resources"""
from fastapi import HTTPException
from typing import Optional


def check_dealer_scope(dealer_code: str, current_user, resource_name: str = "order") -> None:

    if not current_user.is_staff and dealer_code != current_user.code:
        raise HTTPException(
            status_code=403,
            detail=f"Forbidden: You can only access your own {resource_name}s"
        )


def check_not_found(item, resource_name: str = "Resource", resource_id: Optional[str] = None) -> None:

    if not item:
        if resource_id:
            raise HTTPException(
                status_code=404,
                detail=f"{resource_name} with id {resource_id} not found"
            )
        raise HTTPException(status_code=404, detail=f"{resource_name} not found")
