"""
Menu router.

``/public`` feeds the guest ordering screen. The ``/dishes`` endpoints are
the supply-chain screens: partners manage their own dishes, staff and admin
the house menu.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from hotel_shared.utils.schemas import DishCreate, DishOutput, DishUpdate

from hotel_api.core.dependencies import get_menu_service, get_principal
from hotel_api.services.domain import MenuService
from hotel_api.services.permissions import Principal

router = APIRouter(prefix="/api/menu", tags=["menu"])


@router.get("/public", response_model=list[DishOutput])
def public_menu(
    category: str | None = None,
    service: MenuService = Depends(get_menu_service),
) -> list[DishOutput]:
    return service.list_public(category=category)


@router.get("/dishes", response_model=list[DishOutput])
def list_dishes(
    category: str | None = None,
    available_only: bool = False,
    limit: int = Query(default=200, ge=1, le=500),
    principal: Principal = Depends(get_principal),
    service: MenuService = Depends(get_menu_service),
) -> list[DishOutput]:
    return service.list_dishes(
        principal, available_only=available_only, category=category, limit=limit
    )


@router.get("/dishes/{dish_id}", response_model=DishOutput)
def get_dish(
    dish_id: int,
    principal: Principal = Depends(get_principal),
    service: MenuService = Depends(get_menu_service),
) -> DishOutput:
    return service.get(dish_id, principal)


@router.post("/dishes", response_model=DishOutput, status_code=status.HTTP_201_CREATED)
def create_dish(
    body: DishCreate,
    principal: Principal = Depends(get_principal),
    service: MenuService = Depends(get_menu_service),
) -> DishOutput:
    return service.create(body, principal)


@router.patch("/dishes/{dish_id}", response_model=DishOutput)
def update_dish(
    dish_id: int,
    body: DishUpdate,
    principal: Principal = Depends(get_principal),
    service: MenuService = Depends(get_menu_service),
) -> DishOutput:
    return service.update(dish_id, body, principal)


@router.delete("/dishes/{dish_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dish(
    dish_id: int,
    principal: Principal = Depends(get_principal),
    service: MenuService = Depends(get_menu_service),
) -> Response:
    service.delete(dish_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
