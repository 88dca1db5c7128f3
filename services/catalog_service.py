from sqlalchemy.orm import Session
from models.catalog import Service
from core.exceptions import NotFound


class CatalogService:

    @staticmethod
    def list_services(db: Session, search: str | None = None) -> list[Service]:
        query = db.query(Service)
        if search:
            query = query.filter(Service.name.ilike(f"%{search.strip()}%"))
        return query.order_by(Service.name).all()

    @staticmethod
    def get_service(db: Session, name: str) -> Service:
        service = db.query(Service).filter(Service.name == name).one_or_none()
        if not service:
            raise NotFound("Service not found")
        return service
