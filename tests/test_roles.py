"""Role and permission management: back-references, atomic validation and user assignment."""

import pytest

from app.core.exceptions import NotFoundError, AuthorizationError
from app.models.user import User
from app.models.access import Role, Permission, Module, Company
from app.schemas.access import RoleCreate, RoleUpdate, PermissionCreate
from app.services import role_service


@pytest.fixture
def permissions(db, admin_user):
    created = [
        role_service.create_permission(db, admin_user, PermissionCreate(name=name))
        for name in ("tasks.read", "tasks.write", "reports.view")
    ]
    return [p.id for p in created]


def _assigned_roles(db, permission_id):
    return db.query(Permission).filter(Permission.id == permission_id).first().assigned_roles


class TestPermissions:
    def test_create_and_list(self, client, admin_headers):
        response = client.post("/api/permissions", json={"name": "tasks.read", "description": "Read tasks"}, headers=admin_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "tasks.read"
        assert body["assigned_roles"] == []

        listed = client.get("/api/permissions", headers=admin_headers).json()
        assert [p["name"] for p in listed] == ["tasks.read"]

    def test_duplicate_name_conflicts(self, client, admin_headers):
        client.post("/api/permissions", json={"name": "tasks.read"}, headers=admin_headers)
        response = client.post("/api/permissions", json={"name": "tasks.read"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["type"] == "invariant_violation"

    def test_non_admin_cannot_create(self, client, writer_user, headers_for, db):
        response = client.post("/api/permissions", json={"name": "tasks.read"}, headers=headers_for(writer_user))
        assert response.status_code == 403
        assert db.query(Permission).count() == 0

    def test_list_resolves_role_names(self, db, admin_user, permissions):
        role_service.create_role(db, admin_user, RoleCreate(name="Editor", level="write", permissions=permissions[:1]))
        listed = {p["name"]: p for p in role_service.list_permissions(db)}
        assert listed["tasks.read"]["assigned_roles"] == ["Editor"]
        assert listed["reports.view"]["assigned_roles"] == []

    def test_delete_removes_it_from_roles_and_modules(self, db, admin_user, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions))
        module = Module(name="Reports", permissions=list(permissions))
        db.add(module)
        db.commit()

        role_service.delete_permission(db, admin_user, permissions[0])

        assert db.query(Permission).filter(Permission.id == permissions[0]).first() is None
        assert db.query(Role).filter(Role.id == role.id).first().permissions == permissions[1:]
        assert db.query(Module).filter(Module.id == module.id).first().permissions == permissions[1:]


class TestCreateRole:
    def test_links_both_sides(self, db, admin_user, permissions):
        role = role_service.create_role(
            db, admin_user, RoleCreate(name="Editor", level="write", permissions=permissions[:2])
        )
        assert role.permissions == permissions[:2]
        assert _assigned_roles(db, permissions[0]) == [role.id]
        assert _assigned_roles(db, permissions[1]) == [role.id]
        assert _assigned_roles(db, permissions[2]) == []

    def test_missing_permission_creates_nothing(self, db, admin_user, permissions):
        with pytest.raises(NotFoundError) as exc_info:
            role_service.create_role(
                db, admin_user, RoleCreate(name="Broken", permissions=[permissions[0], "missing-permission"])
            )
        assert exc_info.value.details["id"] == "missing-permission"
        assert db.query(Role).filter(Role.name == "Broken").first() is None
        assert _assigned_roles(db, permissions[0]) == []

    def test_missing_permission_over_http(self, client, admin_headers, db):
        response = client.post(
            "/api/roles",
            json={"name": "Broken", "level": "read", "permissions": ["missing-permission"]},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json()["details"] == {"entity": "Permission", "id": "missing-permission"}
        assert db.query(Role).filter(Role.name == "Broken").count() == 0

    def test_level_must_be_recognised(self, client, admin_headers):
        response = client.post("/api/roles", json={"name": "Odd", "level": "owner"}, headers=admin_headers)
        assert response.status_code == 422

    def test_requires_admin(self, db, writer_user):
        with pytest.raises(AuthorizationError):
            role_service.create_role(db, writer_user, RoleCreate(name="Sneaky", level="admin"))
        assert db.query(Role).filter(Role.name == "Sneaky").first() is None


class TestUpdateRole:
    def test_applies_symmetric_difference(self, db, admin_user, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions[:2]))

        updated = role_service.update_role(
            db, admin_user, role.id, RoleUpdate(permissions=[permissions[1], permissions[2]])
        )

        assert updated.permissions == [permissions[1], permissions[2]]
        assert _assigned_roles(db, permissions[0]) == []
        assert _assigned_roles(db, permissions[1]) == [role.id]
        assert _assigned_roles(db, permissions[2]) == [role.id]

    def test_missing_permission_leaves_role_untouched(self, db, admin_user, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions[:1]))

        with pytest.raises(NotFoundError):
            role_service.update_role(
                db, admin_user, role.id, RoleUpdate(name="Renamed", permissions=["missing-permission"])
            )

        stored = db.query(Role).filter(Role.id == role.id).first()
        assert stored.name == "Editor"
        assert stored.permissions == permissions[:1]
        assert _assigned_roles(db, permissions[0]) == [role.id]

    def test_fields_only(self, client, db, admin_user, admin_headers, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions[:1]))

        response = client.put(f"/api/roles/{role.id}", json={"level": "write"}, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["level"] == "write"
        assert body["name"] == "Editor"
        assert body["permissions"] == permissions[:1]
        assert body["permission_names"] == ["tasks.read"]

    def test_explicit_null_clears_description_only(self, client, db, admin_user, admin_headers):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", description="d", level="write"))

        response = client.put(
            f"/api/roles/{role.id}",
            json={"description": None, "name": None, "level": None},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["description"] is None
        assert body["name"] == "Editor"
        assert body["level"] == "write"

    def test_unknown_role(self, client, admin_headers):
        response = client.put("/api/roles/nope", json={"name": "x"}, headers=admin_headers)
        assert response.status_code == 404


class TestDeleteRole:
    def test_cleans_back_references_and_is_gone(self, client, db, admin_user, admin_headers, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions))
        other = role_service.create_role(db, admin_user, RoleCreate(name="Viewer", permissions=permissions[:1]))
        before = {pid: set(_assigned_roles(db, pid)) for pid in permissions}

        response = client.delete(f"/api/roles/{role.id}", headers=admin_headers)
        assert response.status_code == 200

        for pid in permissions:
            assert set(_assigned_roles(db, pid)) == before[pid] - {role.id}
        assert _assigned_roles(db, permissions[0]) == [other.id]

        assert client.get(f"/api/roles/{role.id}", headers=admin_headers).status_code == 404
        with pytest.raises(NotFoundError):
            role_service.get_role_or_404(db, role.id)

    def test_holders_lose_the_role(self, db, admin_user, make_user):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", level="write"))
        holder = make_user(level=None)
        role_service.assign_user_role(db, admin_user, holder.id, role.id)

        role_service.delete_role(db, admin_user, role.id)

        assert db.query(User).filter(User.id == holder.id).first().role_id is None


class TestListRoles:
    def test_dangling_permission_shows_unknown(self, db, admin_user, permissions):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", permissions=permissions[:1]))
        role.permissions = role.permissions + ["gone"]
        db.commit()

        described = role_service.describe_role(db, role)
        assert described["permission_names"] == ["tasks.read", "Unknown"]

    def test_company_filter_includes_global_roles(self, db, admin_user):
        company = Company(name="Acme", modules=[], settings={})
        other = Company(name="Globex", modules=[], settings={})
        db.add_all([company, other])
        db.commit()
        role_service.create_role(db, admin_user, RoleCreate(name="Acme Staff", company_id=company.id))
        role_service.create_role(db, admin_user, RoleCreate(name="Globex Staff", company_id=other.id))

        names = {r["name"] for r in role_service.list_roles(db, company.id)}
        assert "Acme Staff" in names
        assert "Globex Staff" not in names
        # the admin fixture's own global role
        assert "admin-role-1" in names


class TestUserRoles:
    def test_assign_role_over_http(self, client, db, admin_user, admin_headers, make_user):
        role = role_service.create_role(db, admin_user, RoleCreate(name="Editor", level="write"))
        user = make_user(level=None)

        response = client.put(f"/api/users/{user.id}/role", json={"role_id": role.id}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["role_id"] == role.id

    def test_assign_unknown_role(self, client, admin_headers, make_user):
        user = make_user(level=None)
        response = client.put(f"/api/users/{user.id}/role", json={"role_id": "nope"}, headers=admin_headers)
        assert response.status_code == 404

    def test_revoke_resets_company_and_role(self, client, db, admin_headers, make_user):
        company = Company(name="Acme", modules=[], settings={})
        db.add(company)
        db.commit()
        user = make_user(level="write", company_id=company.id)

        response = client.post(f"/api/users/{user.id}/revoke", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["company_id"] is None
        default_role = db.query(Role).filter(Role.id == body["role_id"]).first()
        assert default_role.name == "Default"
        assert default_role.level == "read"

    def test_revoke_without_company_conflicts(self, client, admin_headers, make_user):
        user = make_user(level="read")
        response = client.post(f"/api/users/{user.id}/revoke", headers=admin_headers)
        assert response.status_code == 409


class TestSuperAdmin:
    def test_bootstrap_grants_admin_with_every_permission(self, db, make_user, permissions):
        user = make_user(level=None)

        role = role_service.initialize_super_admin(db, user.email)

        assert role.level == "admin"
        assert sorted(role.permissions) == sorted(permissions)
        for pid in permissions:
            assert role.id in _assigned_roles(db, pid)
        assert db.query(User).filter(User.id == user.id).first().role_id == role.id

    def test_unknown_email(self, db):
        with pytest.raises(NotFoundError):
            role_service.initialize_super_admin(db, "ghost@example.com")
