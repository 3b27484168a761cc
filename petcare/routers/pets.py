"""Pet API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from petcare.database import get_database
from petcare.models.pet import Pet, PetCreate, PetUpdate
from petcare.routers.auth import require_authenticated
from petcare.services.pets import PetService
from petcare.services.session import SessionView

router = APIRouter(prefix="/pets", tags=["pets"])


def get_pet_service(
    session: SessionView = Depends(require_authenticated),
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> PetService:
    """Dependency for pet service."""
    return PetService(db, session)


@router.get("", response_model=list[Pet])
async def list_pets(service: PetService = Depends(get_pet_service)) -> list[Pet]:
    """List the signed-in user's pets."""
    return await service.list_pets()


@router.get("/search", response_model=list[Pet])
async def search_pets(
    q: str = Query(..., min_length=1, max_length=100),
    service: PetService = Depends(get_pet_service),
) -> list[Pet]:
    """Search pets by name or description."""
    return await service.search_pets(q)


@router.post("", response_model=Pet, status_code=status.HTTP_201_CREATED)
async def add_pet(
    pet_data: PetCreate,
    service: PetService = Depends(get_pet_service),
) -> Pet:
    """Add a pet."""
    try:
        return await service.add_pet(pet_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get("/{pet_id}", response_model=Pet)
async def get_pet(
    pet_id: str,
    service: PetService = Depends(get_pet_service),
) -> Pet:
    """Get a pet by ID."""
    try:
        pet = await service.get_pet(pet_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not pet:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Pet not found",
        )
    return pet


@router.patch("/{pet_id}", response_model=Pet)
async def update_pet(
    pet_id: str,
    pet_update: PetUpdate,
    service: PetService = Depends(get_pet_service),
) -> Pet:
    """Update a pet."""
    try:
        pet = await service.update_pet(pet_id, pet_update)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not pet:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Pet not found",
        )
    return pet


@router.delete("/{pet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pet(
    pet_id: str,
    service: PetService = Depends(get_pet_service),
) -> None:
    """Delete a pet."""
    try:
        deleted = await service.delete_pet(pet_id)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Pet not found",
        )
