from datetime import timedelta

from awayline.models import MessageAttempt, MessageStage, NumberBinding
from awayline.utils.helpers import utcnow
from tests.number_test_utils import NumberTestUtils


class TestCronRelease:
    """GET|POST /api/cron/release-expired"""

    def test_requires_secret(self, client):
        response = client.post('/api/cron/release-expired')

        assert response.status_code == 401
        assert response.get_json() == {'ok': False, 'error': 'Unauthorized'}

    def test_rejects_wrong_secret(self, client):
        response = client.get('/api/cron/release-expired', headers={'X-Cron-Secret': 'nope'})

        assert response.status_code == 401

    def test_header_secret_runs_sweep(self, client, provider):
        NumberTestUtils.create_test_binding('user-1', provider, expire_at=utcnow() - timedelta(minutes=5))

        response = client.post('/api/cron/release-expired', headers={'X-Cron-Secret': 'cron-secret'})

        assert response.status_code == 200
        body = response.get_json()
        assert body['ok'] is True
        assert (body['checked'], body['released'], body['failed']) == (1, 1, 0)

    def test_query_token_is_accepted(self, client):
        response = client.get('/api/cron/release-expired?token=cron-secret')

        assert response.status_code == 200
        assert response.get_json()['checked'] == 0

    def test_open_when_secret_unset(self, app, client):
        app.config['CRON_SECRET'] = None

        response = client.get('/api/cron/release-expired')

        assert response.status_code == 200


class TestNumbersApi:
    """/api/numbers admin endpoints"""

    def test_assign_all(self, client, provider):
        NumberTestUtils.create_test_subscription('user-1')
        NumberTestUtils.create_test_subscription('user-2')

        response = client.post('/api/numbers/assign')

        assert response.status_code == 200
        body = response.get_json()
        assert body['processed'] == 2
        assert body['purchased'] == 2
        assert len(provider.purchases) == 2

    def test_admin_token_enforced_when_configured(self, app, client):
        app.config['ADMIN_TOKEN'] = 'admin-secret'

        assert client.post('/api/numbers/assign').status_code == 401
        response = client.post('/api/numbers/assign', headers={'X-Admin-Token': 'admin-secret'})
        assert response.status_code == 200

    def test_assign_single_user(self, client, provider):
        subscription = NumberTestUtils.create_test_subscription('user-1')
        period_end = subscription.current_period_end

        response = client.post('/api/numbers/assign/user-1')

        assert response.status_code == 200
        body = response.get_json()
        assert body['purchased'] is True
        assert body['phone_number'] == '+15550001000'
        assert NumberBinding.query.one().expire_at == period_end

    def test_assign_single_user_without_subscription(self, client, provider):
        response = client.post('/api/numbers/assign/ghost')

        assert response.status_code == 404
        assert provider.purchases == []

    def test_assign_single_user_provider_failure(self, client, provider):
        NumberTestUtils.create_test_subscription('user-1')
        provider.available = []

        response = client.post('/api/numbers/assign/user-1')

        assert response.status_code == 502
        assert response.get_json()['type'] == 'NoNumbersAvailable'

    def test_number_status(self, app, client, provider):
        NumberTestUtils.create_test_subscription('user-1')
        binding = NumberTestUtils.create_test_binding('user-1', provider, phone_number='+15550001000')
        link = NumberTestUtils.create_test_leave_link(to_number='+15550001000')
        client.post('/api/leave', json={'token': link.token, 'message': 'Call me'})

        response = client.get('/api/numbers/user-1')

        assert response.status_code == 200
        body = response.get_json()
        assert body['subscription']['status'] == 'active'
        assert body['binding']['phone_number_sid'] == binding.phone_number_sid
        assert body['binding']['is_released'] is False
        assert [m['message'] for m in body['messages']] == ['Call me']
        assert body['messages'][0]['from_number'] == '+447700900123'

    def test_number_status_unknown_user(self, client):
        assert client.get('/api/numbers/ghost').status_code == 404

    def test_number_status_requires_admin_token(self, app, client):
        app.config['ADMIN_TOKEN'] = 'admin-secret'
        NumberTestUtils.create_test_subscription('user-1')

        assert client.get('/api/numbers/user-1').status_code == 401
        assert client.get('/api/numbers/user-1', headers={'X-Admin-Token': 'admin-secret'}).status_code == 200


class TestTelephony:
    """Voice and SMS status webhooks"""

    def test_voice_answers_and_dispatches_sms(self, client, dispatched):
        response = client.post('/api/telephony/voice', data={
            'From': '+447700900123',
            'To': '+15550001000',
            'CallSid': 'CA123',
        })

        assert response.status_code == 200
        assert response.mimetype == 'application/xml'
        body = response.get_data(as_text=True)
        assert '<Say' in body
        assert '<Hangup/>' in body
        assert dispatched == [('awayline.notify_missed_call', ('+447700900123', '+15550001000', 'CA123'))]

    def test_voice_without_caller_skips_sms(self, client, dispatched):
        response = client.post('/api/telephony/voice', data={'To': '+15550001000', 'CallSid': 'CA124'})

        assert response.status_code == 200
        assert dispatched == []

    def test_voice_rejects_bad_signature(self, app, client, provider, dispatched):
        app.config['VALIDATE_TELEPHONY_SIGNATURE'] = True
        provider.valid_signature = False

        response = client.post(
            '/api/telephony/voice',
            data={'From': '+447700900123', 'To': '+15550001000'},
            headers={'X-SignalWire-Signature': 'bogus'},
        )

        assert response.status_code == 403
        assert dispatched == []

    def test_voice_rejects_missing_signature(self, app, client, dispatched):
        app.config['VALIDATE_TELEPHONY_SIGNATURE'] = True

        response = client.post('/api/telephony/voice', data={'From': '+447700900123'})

        assert response.status_code == 403

    def test_voice_accepts_valid_signature(self, app, client, dispatched):
        app.config['VALIDATE_TELEPHONY_SIGNATURE'] = True

        response = client.post(
            '/api/telephony/voice',
            data={'From': '+447700900123', 'To': '+15550001000', 'CallSid': 'CA125'},
            headers={'X-SignalWire-Signature': 'signed'},
        )

        assert response.status_code == 200
        assert len(dispatched) == 1

    def test_voice_survives_broker_outage(self, client, monkeypatch):
        """A broker failure never changes the caller-facing answer"""
        from awayline.tasks import notify_missed_call

        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker down")

        monkeypatch.setattr(notify_missed_call, 'delay', broken_delay)

        response = client.post('/api/telephony/voice', data={'From': '+447700900123', 'To': '+15550001000'})

        assert response.status_code == 200
        assert '<Say' in response.get_data(as_text=True)

    def test_sms_status_always_ok(self, client):
        response = client.post('/api/telephony/sms-status', data={
            'MessageSid': 'SM1', 'MessageStatus': 'undelivered', 'ErrorCode': '30003',
        })

        assert response.status_code == 200
        assert response.get_json() == {'ok': True}

    def test_sms_status_recorded_on_attempt(self, app, db, client):
        attempt = MessageAttempt(purpose='caller_sms', to_number='+447700900123',
                                 request_stage=MessageStage.SENT, message_sid='SM1')
        db.session.add(attempt)
        db.session.commit()

        response = client.post(f'/api/telephony/sms-status?attemptId={attempt.id}', data={
            'MessageSid': 'SM1', 'MessageStatus': 'undelivered', 'ErrorCode': '30003',
        })

        assert response.status_code == 200
        attempt = db.session.get(MessageAttempt, attempt.id)
        assert attempt.request_stage == MessageStage.CALLBACK_RECEIVED
        assert attempt.provider_status == 'undelivered'
        assert attempt.error_code == '30003'

    def test_sms_status_matched_by_message_sid(self, app, db, client):
        attempt = MessageAttempt(purpose='caller_sms', to_number='+447700900123',
                                 request_stage=MessageStage.SENT, message_sid='SM2')
        db.session.add(attempt)
        db.session.commit()

        client.post('/api/telephony/sms-status', data={'SmsSid': 'SM2', 'SmsStatus': 'delivered'})

        attempt = db.session.get(MessageAttempt, attempt.id)
        assert attempt.provider_status == 'delivered'
        assert attempt.error_code is None


class TestHealth:

    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'healthy'
        assert body['checks']['database'] == 'healthy'
