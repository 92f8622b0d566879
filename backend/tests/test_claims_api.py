"""
Claims API tests: CRUD, receipts, transitions, override and stats.
"""

import io

import pytest

from claimdesk.models import AuditLogEntry, Claim
from claimdesk.services import claim_service
from claimdesk.services.audit_service import AuditEntry
from conftest import make_claim


def _claim_payload(**overrides):
    payload = {
        'date': '2026-10-02',
        'category': 'Meal',
        'description': 'Team lunch',
        'amount': 45.5,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CREATE
# =============================================================================


class TestCreateClaim:

    def test_create_json(self, client, worker_headers, worker_user):
        response = client.post('/api/claims', headers=worker_headers, json=_claim_payload())
        assert response.status_code == 201
        body = response.json
        assert body['message'] == 'Claim created successfully'
        data = body['data']
        assert data['claim_number'] == 'HFA-C-3001'
        assert data['status'] == 'new'
        assert data['amount'] == 45.5
        assert data['date'] == '2026-10-02'
        assert data['user_id'] == worker_user.id
        assert data['employee_id'] == worker_user.employee_id

    def test_large_claim_is_pending(self, client, worker_headers):
        response = client.post('/api/claims', headers=worker_headers, json=_claim_payload(amount='1000.01'))
        assert response.json['data']['status'] == 'pending'

    def test_client_status_ignored(self, client, worker_headers):
        response = client.post('/api/claims', headers=worker_headers, json=_claim_payload(status='paid'))
        assert response.json['data']['status'] == 'new'

    def test_validation_errors(self, client, worker_headers):
        response = client.post('/api/claims', headers=worker_headers, json={
            'date': 'yesterday',
            'category': 'Holiday',
            'amount': -3,
        })
        assert response.status_code == 400
        assert response.json['message'] == 'Validation failed'
        fields = {e['field'] for e in response.json['errors']}
        assert fields == {'date', 'category', 'description', 'amount'}

    def test_reimbursement_claim(self, client, worker_headers):
        response = client.post('/api/claims', headers=worker_headers, json=_claim_payload(
            kind='reimbursement',
            company_name='Acme Ltd',
            contact_person='Sam Lee',
            contact_email='sam@acme.example',
            bank_transfer_amount='30.00',
            vat_amount='15.50',
        ))
        assert response.status_code == 201
        data = response.json['data']
        assert data['kind'] == 'reimbursement'
        assert data['bank_transfer_amount'] == 30.0
        assert data['cash_amount'] == 0.0

    def test_multipart_with_receipt(self, client, worker_headers, worker_user):
        response = client.post(
            '/api/claims',
            headers=worker_headers,
            data={
                **{k: str(v) for k, v in _claim_payload().items()},
                'receipt': (io.BytesIO(b'%PDF-1.4 receipt'), 'lunch.pdf', 'application/pdf'),
            },
            content_type='multipart/form-data',
        )
        assert response.status_code == 201
        data = response.json['data']
        assert data['receipt_url'] == f"/uploads/{worker_user.id}/{data['receipt_filename']}"

        served = client.get(data['receipt_url'])
        assert served.status_code == 200
        assert served.data == b'%PDF-1.4 receipt'
        served.close()

    def test_bad_receipt_creates_nothing(self, client, db_session, worker_headers):
        response = client.post(
            '/api/claims',
            headers=worker_headers,
            data={
                **{k: str(v) for k, v in _claim_payload().items()},
                'receipt': (io.BytesIO(b'MZ'), 'virus.exe', 'application/octet-stream'),
            },
            content_type='multipart/form-data',
        )
        assert response.status_code == 400
        assert db_session.query(Claim).count() == 0

    def test_admin_files_on_behalf(self, client, admin_headers, worker_user):
        response = client.post('/api/claims', headers=admin_headers, json=_claim_payload(user_id=worker_user.id))
        assert response.status_code == 201
        assert response.json['data']['user_id'] == worker_user.id

    def test_worker_cannot_file_on_behalf(self, client, worker_headers, other_worker):
        response = client.post('/api/claims', headers=worker_headers, json=_claim_payload(user_id=other_worker.id))
        assert response.status_code == 403


# =============================================================================
# READ / LIST
# =============================================================================


class TestReadClaims:

    def test_owner_reads_claim_with_references(self, client, worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.get(f'/api/claims/{claim.id}', headers=worker_headers)
        assert response.status_code == 200
        data = response.json['data']
        assert data['owner']['employee_id'] == worker_user.employee_id
        assert data['approved_by'] is None

    def test_other_worker_forbidden(self, client, other_worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.get(f'/api/claims/{claim.id}', headers=other_worker_headers)
        assert response.status_code == 403

    def test_missing_claim(self, client, admin_headers):
        assert client.get('/api/claims/424242', headers=admin_headers).status_code == 404

    def test_worker_lists_own_claims_only(self, client, worker_headers, worker_user, other_worker):
        make_claim(worker_user)
        make_claim(other_worker)
        response = client.get('/api/claims', headers=worker_headers)
        assert response.status_code == 200
        assert response.json['pagination']['total'] == 1
        assert response.json['data'][0]['user_id'] == worker_user.id

    def test_admin_lists_with_filters(self, client, admin_headers, worker_user, other_worker):
        make_claim(worker_user, amount='20')
        make_claim(worker_user, amount='2000')
        make_claim(other_worker, category='Meal', date='2026-09-01')

        response = client.get('/api/claims?status=new,pending', headers=admin_headers)
        assert response.json['pagination']['total'] == 3

        response = client.get('/api/claims?status=pending', headers=admin_headers)
        assert [c['amount'] for c in response.json['data']] == [2000.0]

        response = client.get(f'/api/claims?user_id={other_worker.id}', headers=admin_headers)
        assert response.json['pagination']['total'] == 1

        response = client.get('/api/claims?start_date=2026-09-15', headers=admin_headers)
        assert response.json['pagination']['total'] == 2

        response = client.get('/api/claims?limit=2&page=2', headers=admin_headers)
        assert response.json['pagination'] == {'page': 2, 'limit': 2, 'total': 3, 'pages': 2}

    @pytest.mark.parametrize('query', ['status=archived', 'page=0', 'limit=abc', 'start_date=soon'])
    def test_bad_list_parameters(self, client, admin_headers, query):
        response = client.get(f'/api/claims?{query}', headers=admin_headers)
        assert response.status_code == 400


# =============================================================================
# EDIT / DELETE
# =============================================================================


class TestEditAndDelete:

    def test_owner_edits(self, client, worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}', headers=worker_headers, json={'description': 'Taxi home'})
        assert response.status_code == 200
        assert response.json['data']['description'] == 'Taxi home'

    def test_empty_edit_rejected(self, client, worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}', headers=worker_headers, json={})
        assert response.status_code == 400
        assert response.json['message'] == 'No changes provided'

    def test_non_owner_cannot_edit(self, client, other_worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}', headers=other_worker_headers, json={'description': 'x'})
        assert response.status_code == 403

    def test_decided_claim_cannot_be_edited(self, client, worker_headers, worker_user, approver_user):
        claim = make_claim(worker_user)
        claim_service.approve_claim(approver_user, claim.id)
        response = client.put(f'/api/claims/{claim.id}', headers=worker_headers, json={'amount': 1})
        assert response.status_code == 409

    def test_delete_new_claim(self, client, db_session, worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.delete(f'/api/claims/{claim.id}', headers=worker_headers)
        assert response.status_code == 200
        assert db_session.query(Claim).count() == 0

    def test_delete_pending_claim_conflicts(self, client, worker_headers, worker_user):
        claim = make_claim(worker_user, amount='1500')
        response = client.delete(f'/api/claims/{claim.id}', headers=worker_headers)
        assert response.status_code == 409


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestTransitions:

    def test_worker_cannot_approve(self, client, worker_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/approve', headers=worker_headers)
        assert response.status_code == 403

    def test_full_happy_path(self, client, db_session, worker_user, accountant_headers, approver_headers, approver_user, accountant_user):
        claim = make_claim(worker_user)

        response = client.put(f'/api/claims/{claim.id}/recommend', headers=accountant_headers,
                              json={'recommendation': 'Looks fine'})
        assert response.status_code == 200
        assert response.json['data']['status'] == 'recommendation'

        response = client.put(f'/api/claims/{claim.id}/approve', headers=approver_headers)
        assert response.status_code == 200
        assert response.json['data']['approved_by_id'] == approver_user.id

        response = client.put(f'/api/claims/{claim.id}/pay', headers=accountant_headers,
                              json={'payment_reference': 'BACS-2026-10'})
        assert response.status_code == 200
        data = response.json['data']
        assert data['status'] == 'paid'
        assert data['paid_by_id'] == accountant_user.id
        assert data['paid_at'].endswith('Z')

        actions = [e.action for e in db_session.query(AuditLogEntry).order_by(AuditLogEntry.id)]
        assert actions[-3:] == ['recommend', 'approve', 'pay']

    def test_approve_twice_conflicts(self, client, approver_headers, worker_user):
        claim = make_claim(worker_user)
        assert client.put(f'/api/claims/{claim.id}/approve', headers=approver_headers).status_code == 200
        response = client.put(f'/api/claims/{claim.id}/approve', headers=approver_headers)
        assert response.status_code == 409
        assert response.json['message'] == 'Claim is already approved'

    def test_reject_without_reason(self, client, db_session, approver_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/reject', headers=approver_headers, json={})
        assert response.status_code == 400
        db_session.expire_all()
        assert db_session.get(Claim, claim.id).status == 'new'

    def test_reject_accepts_rejection_reason_key(self, client, approver_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/reject', headers=approver_headers,
                              json={'rejection_reason': 'Missing receipt'})
        assert response.status_code == 200
        assert response.json['data']['rejection_reason'] == 'Missing receipt'

    def test_approver_cannot_pay(self, client, approver_headers, worker_user, approver_user):
        claim = make_claim(worker_user)
        claim_service.approve_claim(approver_user, claim.id)
        response = client.put(f'/api/claims/{claim.id}/pay', headers=approver_headers,
                              json={'payment_reference': 'X'})
        assert response.status_code == 403

    def test_pay_unapproved_conflicts(self, client, accountant_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/pay', headers=accountant_headers,
                              json={'payment_reference': 'X'})
        assert response.status_code == 409

    def test_transition_succeeds_when_audit_write_fails(self, client, db_session, approver_headers, worker_user, monkeypatch):
        claim = make_claim(worker_user)

        def broken_to_model(self):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(AuditEntry, 'to_model', broken_to_model)

        response = client.put(f'/api/claims/{claim.id}/approve', headers=approver_headers)
        assert response.status_code == 200

        db_session.expire_all()
        assert db_session.get(Claim, claim.id).status == 'approved'
        assert db_session.query(AuditLogEntry).filter_by(action='approve').count() == 0


class TestOverrideStatus:

    def test_admin_escalates_new_claim(self, client, admin_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/status', headers=admin_headers,
                              json={'status': 'pending', 'notes': 'Check with finance'})
        assert response.status_code == 200
        assert response.json['data']['status'] == 'pending'
        assert response.json['data']['admin_notes'] == 'Check with finance'

    def test_override_paid_requires_approved(self, client, admin_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/status', headers=admin_headers,
                              json={'status': 'paid', 'payment_reference': 'X'})
        assert response.status_code == 409

    def test_override_invalid_status(self, client, admin_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/status', headers=admin_headers, json={'status': 'done'})
        assert response.status_code == 400

    def test_accountant_cannot_override(self, client, accountant_headers, worker_user):
        claim = make_claim(worker_user)
        response = client.put(f'/api/claims/{claim.id}/status', headers=accountant_headers,
                              json={'status': 'approved'})
        assert response.status_code == 403


# =============================================================================
# STATS
# =============================================================================


class TestStats:

    def test_worker_sees_own_counts(self, client, worker_headers, worker_user, other_worker):
        make_claim(worker_user, amount='10')
        make_claim(worker_user, amount='2000')
        make_claim(other_worker, amount='30')

        response = client.get('/api/claims/stats', headers=worker_headers)
        assert response.status_code == 200
        data = response.json['data']
        assert data['total'] == 2
        assert data['new'] == 1
        assert data['pending'] == 1
        assert data['paid'] == 0
        assert data['total_amount'] == 2010.0
        assert data['categories'] == []

    def test_admin_sees_top_categories(self, client, admin_headers, worker_user, other_worker):
        make_claim(worker_user, category='Travel', amount='300')
        make_claim(other_worker, category='Meal', amount='20')
        make_claim(other_worker, category='Travel', amount='50')

        data = client.get('/api/claims/stats', headers=admin_headers).json['data']
        assert data['total'] == 3
        assert data['categories'][0] == {'category': 'Travel', 'count': 2, 'amount': 350.0}
        assert data['categories'][1]['category'] == 'Meal'
