"""Modules, companies and per-company activation."""

import pytest

from app.core.exceptions import NotFoundError
from app.models.user import User
from app.models.access import Permission, Module, Company, CompanyModule
from app.schemas.access import ModuleCreate, ModuleUpdate, CompanyCreate, PermissionCreate
from app.services import module_service, role_service


@pytest.fixture
def permission_ids(db, admin_user):
    return [
        role_service.create_permission(db, admin_user, PermissionCreate(name=name)).id
        for name in ("billing.view", "billing.edit")
    ]


@pytest.fixture
def company(db, admin_user):
    return module_service.create_company(db, admin_user, CompanyCreate(name="Acme"))


def _permission(db, permission_id):
    return db.query(Permission).filter(Permission.id == permission_id).first()


class TestCompanies:
    def test_create_attaches_caller_without_company(self, client, db, admin_user, admin_headers):
        response = client.post("/api/companies", json={"name": "Acme"}, headers=admin_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["owner_id"] == admin_user.id
        assert body["modules"] == []
        assert db.query(User).filter(User.id == admin_user.id).first().company_id == body["id"]

    def test_requires_admin(self, client, reader_headers):
        response = client.post("/api/companies", json={"name": "Acme"}, headers=reader_headers)
        assert response.status_code == 403


class TestModuleCrud:
    def test_create_links_permissions(self, client, db, admin_headers, permission_ids):
        response = client.post(
            "/api/modules",
            json={"name": "Billing", "permissions": permission_ids},
            headers=admin_headers,
        )

        assert response.status_code == 201
        module_id = response.json()["id"]
        assert response.json()["permissions"] == permission_ids
        for pid in permission_ids:
            assert _permission(db, pid).assigned_modules == [module_id]

    def test_create_with_missing_permission_writes_nothing(self, db, admin_user, permission_ids):
        with pytest.raises(NotFoundError):
            module_service.create_module(
                db, admin_user, ModuleCreate(name="Billing", permissions=[permission_ids[0], "missing"])
            )
        assert db.query(Module).count() == 0
        assert _permission(db, permission_ids[0]).assigned_modules == []

    def test_update_applies_symmetric_difference(self, db, admin_user, permission_ids):
        module = module_service.create_module(
            db, admin_user, ModuleCreate(name="Billing", permissions=permission_ids[:1])
        )

        module_service.update_module(
            db, admin_user, module.id, ModuleUpdate(description="Invoices", permissions=permission_ids[1:])
        )

        stored = db.query(Module).filter(Module.id == module.id).first()
        assert stored.description == "Invoices"
        assert stored.permissions == permission_ids[1:]
        assert _permission(db, permission_ids[0]).assigned_modules == []
        assert _permission(db, permission_ids[1]).assigned_modules == [module.id]

    def test_explicit_null_clears_description(self, client, db, admin_user, admin_headers):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing", description="d"))

        response = client.put(
            f"/api/modules/{module.id}",
            json={"description": None, "name": None},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["description"] is None
        assert response.json()["name"] == "Billing"

    def test_list_reports_activation_for_company(self, client, db, admin_user, admin_headers, company):
        active = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        module_service.create_module(db, admin_user, ModuleCreate(name="Payroll"))
        module_service.activate_module_for_company(db, admin_user, company.id, active.id)

        response = client.get("/api/modules", params={"company_id": company.id}, headers=admin_headers)

        assert response.status_code == 200
        states = {m["name"]: m["is_active"] for m in response.json()}
        assert states == {"Billing": True, "Payroll": False}

    def test_list_requires_read(self, client, make_user, headers_for):
        response = client.get("/api/modules", headers=headers_for(make_user(level=None)))
        assert response.status_code == 403


class TestBulkDelete:
    def test_cascade_removes_every_reference(self, client, db, admin_user, admin_headers, permission_ids, company):
        m1 = module_service.create_module(db, admin_user, ModuleCreate(name="M1", permissions=permission_ids))
        m2 = module_service.create_module(db, admin_user, ModuleCreate(name="M2", permissions=permission_ids[:1]))
        keep = module_service.create_module(db, admin_user, ModuleCreate(name="Keep", permissions=permission_ids))
        other_company = module_service.create_company(db, admin_user, CompanyCreate(name="Globex"))
        for target in (company, other_company):
            for module in (m1, m2, keep):
                module_service.activate_module_for_company(db, admin_user, target.id, module.id)
        deleted = {m1.id, m2.id}

        before_permissions = {pid: set(_permission(db, pid).assigned_modules) for pid in permission_ids}
        before_companies = {c.id: set(c.modules) for c in db.query(Company).all()}

        response = client.post("/api/modules/bulk-delete", json={"ids": [m1.id, m2.id]}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "deleted": [m1.id, m2.id]}
        for pid in permission_ids:
            assert set(_permission(db, pid).assigned_modules) == before_permissions[pid] - deleted
        for c in db.query(Company).all():
            assert set(c.modules) == before_companies[c.id] - deleted
        assert db.query(CompanyModule).filter(CompanyModule.module_id.in_(deleted)).count() == 0
        assert db.query(CompanyModule).filter(CompanyModule.module_id == keep.id).count() == 2
        assert db.query(Module).filter(Module.id.in_(deleted)).count() == 0

    def test_missing_id_aborts_before_any_write(self, db, admin_user):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="M1"))

        with pytest.raises(NotFoundError):
            module_service.bulk_delete_modules(db, admin_user, [module.id, "missing"])

        assert db.query(Module).filter(Module.id == module.id).first() is not None

    def test_empty_request_is_rejected(self, client, admin_headers):
        response = client.post("/api/modules/bulk-delete", json={"ids": []}, headers=admin_headers)
        assert response.status_code == 422

    def test_single_delete_over_http(self, client, db, admin_user, admin_headers, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="M1"))
        module_service.activate_module_for_company(db, admin_user, company.id, module.id)

        response = client.delete(f"/api/modules/{module.id}", headers=admin_headers)

        assert response.status_code == 200
        assert db.query(Company).filter(Company.id == company.id).first().modules == []
        assert client.delete(f"/api/modules/{module.id}", headers=admin_headers).status_code == 404


class TestActivation:
    def test_activation_is_idempotent(self, client, db, admin_user, admin_headers, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        path = f"/api/companies/{company.id}/modules/{module.id}"

        first = client.post(path, headers=admin_headers)
        second = client.post(path, headers=admin_headers)

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert first.json()["record_id"]
        assert second.status_code == 200
        assert second.json()["success"] is True
        assert db.query(CompanyModule).filter(
            CompanyModule.company_id == company.id,
            CompanyModule.module_id == module.id
        ).count() == 1
        assert db.query(Company).filter(Company.id == company.id).first().modules == [module.id]

    def test_activation_repairs_missing_company_entry(self, db, admin_user, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        module_service.activate_module_for_company(db, admin_user, company.id, module.id)
        company.modules = []
        db.commit()

        result = module_service.activate_module_for_company(db, admin_user, company.id, module.id)

        assert result["success"] is True
        assert db.query(Company).filter(Company.id == company.id).first().modules == [module.id]

    def test_unknown_module_or_company(self, client, db, admin_user, admin_headers, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        assert client.post(f"/api/companies/{company.id}/modules/missing", headers=admin_headers).status_code == 404
        assert client.post(f"/api/companies/missing/modules/{module.id}", headers=admin_headers).status_code == 404
        assert db.query(CompanyModule).count() == 0

    def test_deactivation_removes_both_records(self, client, db, admin_user, admin_headers, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        module_service.activate_module_for_company(db, admin_user, company.id, module.id)
        path = f"/api/companies/{company.id}/modules/{module.id}"

        response = client.delete(path, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert db.query(CompanyModule).count() == 0
        assert db.query(Company).filter(Company.id == company.id).first().modules == []

        # nothing left to remove
        assert client.delete(path, headers=admin_headers).json()["success"] is True

    def test_writer_cannot_activate(self, client, db, admin_user, writer_user, headers_for, company):
        module = module_service.create_module(db, admin_user, ModuleCreate(name="Billing"))
        response = client.post(
            f"/api/companies/{company.id}/modules/{module.id}", headers=headers_for(writer_user)
        )
        assert response.status_code == 403
        assert db.query(CompanyModule).count() == 0
