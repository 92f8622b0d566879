"""
User management API tests.
"""

from claimdesk.models import AuditLogEntry, User
from conftest import PASSWORD, get_auth_token, make_claim


def _new_user_payload(**overrides):
    payload = {
        'name': 'Priya Shah',
        'email': 'priya@example.com',
        'password': 'Welcome123',
        'department': 'Engineering',
    }
    payload.update(overrides)
    return payload


class TestCreateUser:

    def test_admin_creates_user_with_generated_employee_id(self, client, admin_headers, admin_user):
        response = client.post('/api/users', headers=admin_headers, json=_new_user_payload())
        assert response.status_code == 201
        data = response.json['data']
        assert data['employee_id'] == 'HFA-W-1002'
        assert data['role'] == 'worker'
        assert data['status'] == 'active'
        assert 'password_hash' not in data

        assert get_auth_token(client, 'priya@example.com', 'Welcome123') is not None

    def test_explicit_employee_id_and_role(self, client, admin_headers):
        response = client.post('/api/users', headers=admin_headers, json=_new_user_payload(
            employee_id='hfa-w-5000', role='Accountant',
        ))
        assert response.status_code == 201
        assert response.json['data']['employee_id'] == 'HFA-W-5000'
        assert response.json['data']['role'] == 'accountant'

    def test_duplicate_email_conflicts(self, client, admin_headers, worker_user):
        response = client.post('/api/users', headers=admin_headers, json=_new_user_payload(
            email=worker_user.email.upper(),
        ))
        assert response.status_code == 409
        assert response.json['message'] == 'Email already exists'

    def test_missing_fields_reported(self, client, admin_headers):
        response = client.post('/api/users', headers=admin_headers, json={'name': 'No Email'})
        assert response.status_code == 400
        fields = {e['field'] for e in response.json['errors']}
        assert {'email', 'password', 'department'} <= fields

    def test_invalid_role(self, client, admin_headers):
        response = client.post('/api/users', headers=admin_headers, json=_new_user_payload(role='overlord'))
        assert response.status_code == 400

    def test_worker_cannot_create_users(self, client, worker_headers):
        response = client.post('/api/users', headers=worker_headers, json=_new_user_payload())
        assert response.status_code == 403
        assert response.json['message'] == 'Access denied'

    def test_creation_is_audited(self, client, db_session, admin_headers, admin_user):
        client.post('/api/users', headers=admin_headers, json=_new_user_payload())
        entry = db_session.query(AuditLogEntry).filter_by(action='create', entity_type='user').one()
        assert entry.actor_id == admin_user.id


class TestListAndRead:

    def test_list_with_filters_and_pagination(self, client, admin_headers, worker_user, other_worker, accountant_user):
        response = client.get('/api/users?role=worker', headers=admin_headers)
        assert response.status_code == 200
        assert response.json['pagination']['total'] == 2
        assert {u['role'] for u in response.json['data']} == {'worker'}

        response = client.get('/api/users?search=accountant', headers=admin_headers)
        assert [u['id'] for u in response.json['data']] == [accountant_user.id]

        response = client.get('/api/users?limit=2&page=2', headers=admin_headers)
        assert response.json['pagination'] == {'page': 2, 'limit': 2, 'total': 4, 'pages': 2}
        assert len(response.json['data']) == 2

    def test_worker_cannot_list(self, client, db_session, worker_headers):
        response = client.get('/api/users', headers=worker_headers)
        assert response.status_code == 403
        denied = db_session.query(AuditLogEntry).filter_by(action='access_denied').one()
        assert 'MANAGE_USERS' in denied.details

    def test_user_reads_own_profile(self, client, worker_headers, worker_user):
        response = client.get(f'/api/users/{worker_user.id}', headers=worker_headers)
        assert response.status_code == 200
        assert response.json['data']['email'] == worker_user.email

    def test_user_cannot_read_other_profile(self, client, worker_headers, other_worker):
        response = client.get(f'/api/users/{other_worker.id}', headers=worker_headers)
        assert response.status_code == 403

    def test_missing_user(self, client, admin_headers):
        assert client.get('/api/users/9999', headers=admin_headers).status_code == 404


class TestUpdateUser:

    def test_self_edit_ignores_role(self, client, worker_headers, worker_user):
        response = client.put(f'/api/users/{worker_user.id}', headers=worker_headers, json={
            'name': 'Renamed Worker',
            'role': 'admin',
        })
        assert response.status_code == 200
        assert response.json['data']['name'] == 'Renamed Worker'
        assert response.json['data']['role'] == 'worker'

    def test_admin_changes_role(self, client, admin_headers, worker_user):
        response = client.put(f'/api/users/{worker_user.id}', headers=admin_headers, json={'role': 'approver'})
        assert response.status_code == 200
        assert response.json['data']['role'] == 'approver'

    def test_admin_cannot_deactivate_self_via_update(self, client, admin_headers, admin_user):
        response = client.put(f'/api/users/{admin_user.id}', headers=admin_headers, json={'status': 'inactive'})
        assert response.status_code == 400
        assert response.json['message'] == 'You cannot deactivate your own account'

    def test_admin_may_resend_own_active_status_in_any_case(self, client, admin_headers, admin_user):
        response = client.put(f'/api/users/{admin_user.id}', headers=admin_headers, json={'status': 'ACTIVE'})
        assert response.status_code == 200
        assert response.json['data']['status'] == 'active'

    def test_deactivation_revokes_sessions(self, client, admin_headers, worker_user, worker_headers):
        response = client.put(f'/api/users/{worker_user.id}', headers=admin_headers, json={'status': 'inactive'})
        assert response.status_code == 200
        assert client.get('/api/auth/me', headers=worker_headers).status_code == 401


class TestUserStatus:

    def test_admin_cannot_change_own_status(self, client, admin_headers, admin_user):
        response = client.put(f'/api/users/{admin_user.id}/status', headers=admin_headers, json={'status': 'inactive'})
        assert response.status_code == 400
        assert response.json['message'] == 'You cannot change your own status'

    def test_suspend_user(self, client, admin_headers, worker_user, worker_headers):
        response = client.put(f'/api/users/{worker_user.id}/status', headers=admin_headers, json={'status': 'suspended'})
        assert response.status_code == 200
        assert response.json['data']['status'] == 'suspended'
        assert client.get('/api/auth/me', headers=worker_headers).status_code == 401
        assert get_auth_token(client, worker_user.email, PASSWORD) is None

    def test_invalid_status(self, client, admin_headers, worker_user):
        response = client.put(f'/api/users/{worker_user.id}/status', headers=admin_headers, json={'status': 'banned'})
        assert response.status_code == 400


class TestDeleteUser:

    def test_admin_cannot_delete_self(self, client, admin_headers, admin_user):
        response = client.delete(f'/api/users/{admin_user.id}/delete', headers=admin_headers)
        assert response.status_code == 400
        assert response.json['message'] == 'You cannot delete your own account'

    def test_delete_unreferenced_user(self, client, db_session, admin_headers, other_worker):
        response = client.delete(f'/api/users/{other_worker.id}/delete', headers=admin_headers)
        assert response.status_code == 200
        assert db_session.query(User).filter_by(email='other.worker@example.com').first() is None

    def test_referenced_user_must_be_deactivated(self, client, admin_headers, worker_user):
        make_claim(worker_user)
        response = client.delete(f'/api/users/{worker_user.id}/delete', headers=admin_headers)
        assert response.status_code == 409

    def test_worker_cannot_delete(self, client, worker_headers, other_worker):
        response = client.delete(f'/api/users/{other_worker.id}/delete', headers=worker_headers)
        assert response.status_code == 403
