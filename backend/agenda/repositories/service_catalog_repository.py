# backend/agenda/repositories/service_catalog_repository.py
"""Read access to the service catalog snapshot."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.service import Service
from .base_repository import BaseRepository


class ServiceCatalogRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_service(self, service_id: str) -> Optional[Service]:
        return self.get_by_id(service_id)
