from datetime import timedelta

from awayline.celery_app import get_beat_schedule
from awayline.models import LeaveLink, MessageAttempt, MessageStage
from awayline.tasks import (
    assign_active_subscribers,
    assign_number_for_user,
    dispatch,
    notify_missed_call,
    release_expired_numbers,
)
from awayline.utils.helpers import isoformat_utc, utcnow
from tests.number_test_utils import NumberTestUtils


class StubResult:
    id = 'task-123'


class StubTask:
    name = 'awayline.stub'

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def delay(self, *args, **kwargs):
        if self.error:
            raise self.error
        self.calls.append(args)
        return StubResult()


class TestDispatch:

    def test_returns_task_id(self):
        task = StubTask()

        assert dispatch(task, 'a', 'b') == 'task-123'
        assert task.calls == [('a', 'b')]

    def test_broker_errors_are_swallowed(self):
        assert dispatch(StubTask(error=ConnectionError("redis down"))) is None


class TestNumberTasks:

    def test_assign_number_for_user(self, app, provider):
        expire_at = utcnow() + timedelta(days=30)

        result = assign_number_for_user('user-1', isoformat_utc(expire_at))

        assert result['success'] is True
        assert result['purchased'] is True
        assert len(NumberTestUtils.unreleased_bindings('user-1')) == 1

    def test_assign_number_failure_is_reported(self, app, provider):
        provider.available = []

        result = assign_number_for_user('user-1', isoformat_utc(utcnow() + timedelta(days=30)))

        assert result['success'] is False
        assert 'No available' in result['error']

    def test_assign_active_subscribers(self, app, provider):
        NumberTestUtils.create_test_subscription('user-1')

        summary = assign_active_subscribers()

        assert summary['purchased'] == 1

    def test_release_expired_numbers(self, app, provider):
        NumberTestUtils.create_test_binding('user-1', provider, expire_at=utcnow() - timedelta(days=1))

        summary = release_expired_numbers()

        assert summary['released'] == 1
        assert summary['failed'] == 0

    def test_beat_schedule_intervals(self, app):
        schedule = get_beat_schedule(app.config)

        assert schedule['release-expired-numbers']['schedule'] == timedelta(hours=1)
        assert schedule['assign-active-subscribers']['schedule'] == timedelta(hours=6)


class TestNotifyMissedCall:

    def test_texts_single_use_leave_link(self, app, provider):
        outcome = notify_missed_call('+447700900123', '+15550001000', 'CA123')

        link = LeaveLink.query.one()
        assert link.call_sid == 'CA123'
        assert link.from_number == '+447700900123'
        assert outcome['caller_sms'] is not None
        assert outcome['operator_alert'] is None
        assert provider.messages[0]['to'] == '+447700900123'
        assert f'https://example.test/leave/{link.token}' in provider.messages[0]['body']
        assert 'CA123' not in provider.messages[0]['body']

    def test_records_attempt_with_status_callback(self, app, provider):
        outcome = notify_missed_call('+447700900123', '+15550001000', 'CA123')

        attempt = MessageAttempt.query.one()
        assert attempt.purpose == 'caller_sms'
        assert attempt.request_stage == MessageStage.SENT
        assert attempt.message_sid == outcome['caller_sms']
        assert provider.messages[0]['status_callback'] == \
            f'https://example.test/api/telephony/sms-status?attemptId={attempt.id}'

    def test_retried_call_texts_same_link(self, app, provider):
        notify_missed_call('+447700900123', '+15550001000', 'CA123')
        notify_missed_call('+447700900123', '+15550001000', 'CA123')

        assert LeaveLink.query.count() == 1
        assert provider.messages[0]['body'] == provider.messages[1]['body']

    def test_alerts_operator_when_configured(self, app, provider):
        app.config['OPERATOR_ALERT_NUMBER'] = '+15559990000'

        outcome = notify_missed_call('+447700900123', '+15550001000', 'CA123')

        assert outcome['operator_alert'] is not None
        assert [m['to'] for m in provider.messages] == ['+447700900123', '+15559990000']
        assert sorted(a.purpose for a in MessageAttempt.query.all()) == ['caller_sms', 'operator_alert']

    def test_sms_failure_is_logged_not_raised(self, app, provider):
        provider.fail_sms = True

        outcome = notify_missed_call('+447700900123', '+15550001000', 'CA123')

        assert outcome == {'caller_sms': None, 'operator_alert': None}
        attempt = MessageAttempt.query.one()
        assert attempt.request_stage == MessageStage.SEND_FAILED
        assert 'unsubscribed' in attempt.error_message
