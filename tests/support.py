"""Shared test helpers: isolated in-memory database and small model factories."""

from datetime import date

from sqlalchemy.orm import Session, sessionmaker

from vulnradar.core.database import build_engine, build_session_factory
from vulnradar.models import (
    Base,
    Company,
    CompanyVendor,
    User,
    UserCompany,
    Vendor,
    Vulnerability,
)
from vulnradar.schemas.auth import CurrentUser


def make_session_factory() -> sessionmaker:
    """Fresh SQLite in-memory database with every table; all sessions share one connection."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    return build_session_factory(engine)


def make_session() -> Session:
    return make_session_factory()()


def add_company(db: Session, name: str = "Acme") -> Company:
    company = Company(name=name)
    db.add(company)
    db.commit()
    return company


def add_vendor(db: Session, name: str = "Microsoft", company: Company | None = None) -> Vendor:
    """Create a vendor; with company, also select it for that company."""
    vendor = Vendor(name=name, vendor_type="Software")
    db.add(vendor)
    db.commit()
    if company is not None:
        db.add(CompanyVendor(company_id=company.id, vendor_id=vendor.id, is_active=True))
        db.commit()
    return vendor


def add_user(
    db: Session,
    email: str,
    role: str = "employee",
    company: Company | None = None,
    subject_id: str | None = None,
    password_hash: str | None = None,
) -> User:
    user = User(
        email=email,
        role=role,
        subject_id=subject_id,
        password_hash=password_hash,
        company_name=company.name if company is not None else None,
    )
    db.add(user)
    db.commit()
    if company is not None:
        db.add(UserCompany(user_id=user.id, company_id=company.id, is_primary=True))
        db.commit()
    return user


def add_vulnerability(
    db: Session,
    tlp_rating: str = "GREEN",
    severity_level: str = "High",
    vendor: Vendor | None = None,
    cve_id: str | None = None,
    title: str | None = None,
    description: str | None = "Buffer overflow in parser",
    published_date: date | None = None,
    is_duplicate: bool = False,
) -> Vulnerability:
    """Insert a vulnerability directly with a fixed TLP rating (bypasses the classifier)."""
    vulnerability = Vulnerability(
        cve_id=cve_id,
        title=title or f"{cve_id or 'VULN'}: test vulnerability {tlp_rating} {severity_level}",
        description=description,
        source="NVD",
        published_date=published_date,
        severity_level=severity_level,
        severity_score=7.5,
        tlp_rating=tlp_rating,
        vendor_id=vendor.id if vendor is not None else None,
        is_duplicate=is_duplicate,
    )
    db.add(vulnerability)
    db.commit()
    return vulnerability


def as_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        subject_id=user.subject_id,
        company_name=user.company_name,
    )
