import logging
from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import Capability, require_capability
from src.base.dependencies import get_session
from src.base.models import local_today
from src.base.schemas import NonEmptyStr, PatchModel
from src.facility import store
from src.facility.maintenance import DEFAULT_MAINTENANCE_PERIOD_MONTHS
from src.facility.models import Facility
from src.media import get_storage, read_uploads
from src.media.interface import ImageFolder, StorageBackend
from src.media.pipeline import delete_image, discard_on_error, upload_images

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/facilities",
    dependencies=[Depends(require_capability(Capability.MANAGE_CLIENTS))],
)

MAX_REPORT_IMAGES = 10


class FacilityCreate(BaseModel):
    client_id: UUID
    name: NonEmptyStr
    installation_date: date
    maintenance_period_months: int = Field(
        default=DEFAULT_MAINTENANCE_PERIOD_MONTHS, ge=1
    )
    last_maintenance_date: date | None = None


class FacilityUpdate(PatchModel):
    nullable = frozenset({"last_maintenance_date", "details"})

    client_id: UUID | None = None
    name: NonEmptyStr | None = None
    installation_date: date | None = None
    maintenance_period_months: int | None = Field(default=None, ge=1)
    last_maintenance_date: date | None = None
    details: str | None = None


class FacilityResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    client_id: UUID
    client_name: str | None
    name: str
    installation_date: date
    maintenance_period_months: int
    last_maintenance_date: date | None
    next_due_date: date
    details: str | None
    images: list[str]
    created_at: datetime
    updated_at: datetime | None


class UpcomingMaintenanceResponse(BaseModel):
    facility: FacilityResponse
    next_due_date: date


class ReportUploadError(BaseModel):
    message: str
    errors: list[str]


async def _get_facility(session: AsyncSession, facility_id: UUID) -> Facility:
    facility = await store.get_facility(session, facility_id)
    if facility is None:
        raise HTTPException(status_code=404, detail="Facility not found")
    return facility


@router.get("", response_model=list[FacilityResponse])
async def list_facilities(
    session: AsyncSession = Depends(get_session),
) -> list[Facility]:
    return await store.list_facilities(session)


@router.get("/recent", response_model=list[FacilityResponse])
async def recent_facilities(
    limit: int = 5,
    session: AsyncSession = Depends(get_session),
) -> list[Facility]:
    return await store.get_recent_facilities(session, limit)


@router.get("/upcoming", response_model=list[UpcomingMaintenanceResponse])
async def upcoming_facilities(
    limit: int = 5,
    session: AsyncSession = Depends(get_session),
) -> list[UpcomingMaintenanceResponse]:
    scheduled = await store.get_upcoming_maintenance(session, local_today(), limit)
    return [
        UpcomingMaintenanceResponse(
            facility=FacilityResponse.model_validate(s.facility),
            next_due_date=s.next_due_date,
        )
        for s in scheduled
    ]


@router.post("", response_model=FacilityResponse, status_code=201)
async def create_facility(
    body: FacilityCreate,
    session: AsyncSession = Depends(get_session),
) -> Facility:
    facility = Facility(**body.model_dump())
    session.add(facility)
    await session.flush()
    await session.refresh(facility, attribute_names=["client"])
    return facility


@router.get("/{facility_id}", response_model=FacilityResponse)
async def get_facility(
    facility_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> Facility:
    return await _get_facility(session, facility_id)


@router.patch("/{facility_id}", response_model=FacilityResponse)
async def update_facility(
    facility_id: UUID,
    body: FacilityUpdate,
    session: AsyncSession = Depends(get_session),
) -> Facility:
    facility = await _get_facility(session, facility_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(facility, key, value)
    await session.flush()
    await session.refresh(facility, attribute_names=["client"])
    return facility


@router.delete("/{facility_id}", status_code=204)
async def delete_facility(
    facility_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    facility = await _get_facility(session, facility_id)
    await session.delete(facility)


@router.put(
    "/{facility_id}/report",
    response_model=FacilityResponse,
    responses={400: {"model": ReportUploadError}},
)
async def save_report(
    facility_id: UUID,
    details: str = Form(default=""),
    files: list[UploadFile] | None = File(default=None),
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> Facility:
    """Replace the technical report text and append any new photos."""
    facility = await _get_facility(session, facility_id)

    uploads = await read_uploads(files or [])
    new_urls: list[str] = []
    if uploads:
        result = await upload_images(
            uploads,
            ImageFolder.FACILITIES,
            storage,
            entity_id=facility.id,
            max_images=MAX_REPORT_IMAGES,
        )
        if not result.success:
            # The report is only saved when every photo made it; drop the rest.
            for url in result.urls:
                await delete_image(url, storage)
            raise HTTPException(
                status_code=400,
                detail=ReportUploadError(
                    message="Error uploading images", errors=result.errors
                ).model_dump(),
            )
        new_urls = result.urls

    async with discard_on_error(new_urls, storage):
        facility.details = details
        facility.images = [*facility.images, *new_urls]
        await session.flush()
    return facility


@router.delete("/{facility_id}/images", response_model=FacilityResponse)
async def remove_facility_image(
    facility_id: UUID,
    url: str,
    session: AsyncSession = Depends(get_session),
    storage: StorageBackend = Depends(get_storage),
) -> Facility:
    facility = await _get_facility(session, facility_id)
    if url not in facility.images:
        raise HTTPException(status_code=404, detail="Image not found")

    if not await delete_image(url, storage):
        logger.warning("Image %s kept in storage, detaching it anyway", url)

    facility.images = [image for image in facility.images if image != url]
    await session.flush()
    return facility
