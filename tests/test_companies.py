"""Tests for vulnradar.services.companies: membership, case-insensitive creation, vendor replacement."""

import unittest

from support import add_company, add_user, add_vendor, make_session

from vulnradar.models import CompanyVendor, UserCompany
from vulnradar.schemas.company import CompanyCreate
from vulnradar.services.companies import (
    create_company,
    get_user_company_id,
    link_user_to_company,
    list_company_vendors,
    save_company_vendors,
)
from vulnradar.services.errors import NotFoundError


class TestCreateCompany(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_creates(self) -> None:
        company, created = create_company(self.db, CompanyCreate(name="  Acme Corp ", industry="Retail"))
        self.assertTrue(created)
        self.assertEqual(company.name, "Acme Corp")

    def test_existing_returned_case_insensitively(self) -> None:
        first, _ = create_company(self.db, CompanyCreate(name="Acme Corp"))
        second, created = create_company(self.db, CompanyCreate(name="ACME corp"))
        self.assertFalse(created)
        self.assertEqual(first.id, second.id)


class TestMembership(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.acme = add_company(self.db, "Acme")
        self.globex = add_company(self.db, "Globex")

    def tearDown(self) -> None:
        self.db.close()

    def test_no_company(self) -> None:
        user = add_user(self.db, "a@b.io")
        self.assertIsNone(get_user_company_id(self.db, user.id))

    def test_link_sets_company_name(self) -> None:
        user = add_user(self.db, "a@b.io")
        link_user_to_company(self.db, user, self.acme.id)
        self.assertEqual(get_user_company_id(self.db, user.id), self.acme.id)
        self.assertEqual(user.company_name, "Acme")

    def test_relink_replaces_previous(self) -> None:
        user = add_user(self.db, "a@b.io", company=self.acme)
        link_user_to_company(self.db, user, self.globex.id)
        self.assertEqual(get_user_company_id(self.db, user.id), self.globex.id)
        self.assertEqual(self.db.query(UserCompany).filter(UserCompany.user_id == user.id).count(), 1)

    def test_unknown_company(self) -> None:
        user = add_user(self.db, "a@b.io")
        with self.assertRaises(NotFoundError):
            link_user_to_company(self.db, user, 9999)


class TestSaveCompanyVendors(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.company = add_company(self.db, "Acme")
        self.microsoft = add_vendor(self.db, "Microsoft")
        self.cisco = add_vendor(self.db, "Cisco")
        self.oracle = add_vendor(self.db, "Oracle")

    def tearDown(self) -> None:
        self.db.close()

    def test_full_replace_with_use_cases(self) -> None:
        save_company_vendors(self.db, self.company.id, [self.microsoft.id, self.cisco.id])
        saved = save_company_vendors(
            self.db,
            self.company.id,
            [self.oracle.id, self.cisco.id],
            {self.oracle.id: "  Databases ", self.cisco.id: ""},
        )
        self.assertEqual([v.vendor_name for v in saved], ["Cisco", "Oracle"])
        by_name = {v.vendor_name: v for v in saved}
        self.assertEqual(by_name["Oracle"].use_case_description, "Databases")
        self.assertIsNone(by_name["Cisco"].use_case_description)
        self.assertEqual(
            self.db.query(CompanyVendor).filter(CompanyVendor.company_id == self.company.id).count(), 2
        )

    def test_empty_selection_clears(self) -> None:
        save_company_vendors(self.db, self.company.id, [self.microsoft.id])
        self.assertEqual(save_company_vendors(self.db, self.company.id, []), [])
        self.assertEqual(list_company_vendors(self.db, self.company.id), [])

    def test_unknown_vendor_rejected_without_changes(self) -> None:
        save_company_vendors(self.db, self.company.id, [self.microsoft.id])
        with self.assertRaises(NotFoundError):
            save_company_vendors(self.db, self.company.id, [self.cisco.id, 4242])
        self.assertEqual(
            [v.vendor_name for v in list_company_vendors(self.db, self.company.id)], ["Microsoft"]
        )
