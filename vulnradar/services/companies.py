"""Company membership, company creation and company vendor selection."""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from vulnradar.models import Company, CompanyVendor, User, UserCompany, Vendor
from vulnradar.schemas.company import CompanyCreate
from vulnradar.schemas.vendor import CompanyVendorOut
from vulnradar.services.errors import NotFoundError

logger = logging.getLogger(__name__)


def get_user_company_id(db: Session, user_id: int) -> int | None:
    """The user's company (first link, primary first), or None when the user has not joined one."""
    link = (
        db.query(UserCompany)
        .filter(UserCompany.user_id == user_id)
        .order_by(UserCompany.is_primary.desc(), UserCompany.id)
        .first()
    )
    return link.company_id if link is not None else None


def get_user_company(db: Session, user_id: int) -> Company | None:
    company_id = get_user_company_id(db, user_id)
    if company_id is None:
        return None
    return db.get(Company, company_id)


def is_company_member(db: Session, user_id: int, company_id: int) -> bool:
    return (
        db.query(UserCompany.id)
        .filter(UserCompany.user_id == user_id, UserCompany.company_id == company_id)
        .first()
        is not None
    )


def find_company_by_name(db: Session, name: str) -> Company | None:
    return db.query(Company).filter(func.lower(Company.name) == name.strip().lower()).first()


def create_company(db: Session, payload: CompanyCreate) -> tuple[Company, bool]:
    """Create a company, or return the existing one with the same name (case-insensitive). Returns (company, created)."""
    existing = find_company_by_name(db, payload.name)
    if existing is not None:
        return existing, False
    company = Company(
        name=payload.name,
        description=payload.description,
        industry=payload.industry,
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Company created", extra={"company_id": company.id})
    return company, True


def link_user_to_company(db: Session, user: User, company_id: int) -> Company:
    """Make company_id the user's company (replacing any previous link) and store the name on the user."""
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    db.query(UserCompany).filter(
        UserCompany.user_id == user.id, UserCompany.company_id != company_id
    ).delete(synchronize_session=False)
    if not is_company_member(db, user.id, company_id):
        db.add(UserCompany(user_id=user.id, company_id=company_id, is_primary=True))
    user.company_name = company.name
    db.commit()
    logger.info("User linked to company", extra={"user_id": user.id, "company_id": company_id})
    return company


def list_company_users(db: Session, company_id: int) -> list[User]:
    return (
        db.query(User)
        .join(UserCompany, UserCompany.user_id == User.id)
        .filter(UserCompany.company_id == company_id, User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )


def list_company_vendors(db: Session, company_id: int) -> list[CompanyVendorOut]:
    rows = (
        db.query(CompanyVendor, Vendor)
        .join(Vendor, Vendor.id == CompanyVendor.vendor_id)
        .filter(CompanyVendor.company_id == company_id, CompanyVendor.is_active.is_(True))
        .order_by(Vendor.name)
        .all()
    )
    return [
        CompanyVendorOut(
            vendor_id=vendor.id,
            vendor_name=vendor.name,
            vendor_type=vendor.vendor_type,
            vendor_description=vendor.description,
            use_case_description=link.use_case_description,
            is_active=link.is_active,
        )
        for link, vendor in rows
    ]


def save_company_vendors(
    db: Session,
    company_id: int,
    vendor_ids: list[int],
    use_case_descriptions: dict[int, str] | None = None,
) -> list[CompanyVendorOut]:
    """Replace the company's vendor set: delete every existing row, then insert the selection."""
    if vendor_ids:
        known = {
            vendor_id
            for (vendor_id,) in db.query(Vendor.id).filter(Vendor.id.in_(vendor_ids)).all()
        }
        unknown = [v for v in vendor_ids if v not in known]
        if unknown:
            raise NotFoundError(f"Unknown vendor ids: {', '.join(str(v) for v in unknown)}")

    use_cases = use_case_descriptions or {}
    db.query(CompanyVendor).filter(CompanyVendor.company_id == company_id).delete(
        synchronize_session=False
    )
    for vendor_id in vendor_ids:
        use_case = (use_cases.get(vendor_id) or "").strip() or None
        db.add(
            CompanyVendor(
                company_id=company_id,
                vendor_id=vendor_id,
                use_case_description=use_case,
                is_active=True,
            )
        )
    db.commit()
    logger.info(
        "Company vendors saved",
        extra={"company_id": company_id, "vendor_count": len(vendor_ids)},
    )
    return list_company_vendors(db, company_id)
