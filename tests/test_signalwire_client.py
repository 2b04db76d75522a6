from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioRestException

from awayline.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderMessageFailed,
    ProviderPurchaseFailed,
    ProviderReleaseFailed,
)
from awayline.utils.signalwire_client import SignalWireClient, SignalWireConfig


def rest_error(status, code=None):
    return TwilioRestException(status, 'https://example.signalwire.com/api/laml', msg='boom', code=code)


class FakeNumberResource:
    def __init__(self, sdk, sid):
        self.sdk = sdk
        self.sid = sid

    def delete(self):
        if self.sdk.delete_error:
            raise self.sdk.delete_error
        self.sdk.deleted.append(self.sid)
        return True


class FakeIncomingNumbers:
    def __init__(self, sdk):
        self.sdk = sdk

    def __call__(self, sid):
        return FakeNumberResource(self.sdk, sid)

    def create(self, **kwargs):
        if self.sdk.create_error:
            raise self.sdk.create_error
        self.sdk.created.append(kwargs)
        return SimpleNamespace(sid='PN1', phone_number=kwargs['phone_number'])

    def list(self, phone_number=None, limit=None):
        return [SimpleNamespace(sid='PN7', phone_number=phone_number)] if phone_number == '+15550007777' else []


class FakeSdk:
    """Mimics the parts of signalwire.rest.Client the wrapper touches"""

    def __init__(self, available=('+15550001000',)):
        self.available = list(available)
        self.search_error = None
        self.create_error = None
        self.delete_error = None
        self.message_error = None
        self.searches = []
        self.created = []
        self.deleted = []
        self.sent = []
        self.incoming_phone_numbers = FakeIncomingNumbers(self)
        self.messages = SimpleNamespace(create=self._send)

    def available_phone_numbers(self, country):
        sdk = self

        def local_list(**kwargs):
            if sdk.search_error:
                raise sdk.search_error
            sdk.searches.append((country, kwargs))
            return [SimpleNamespace(phone_number=n) for n in sdk.available[:kwargs.get('limit', 1)]]

        return SimpleNamespace(local=SimpleNamespace(list=local_list))

    def _send(self, **kwargs):
        if self.message_error:
            raise self.message_error
        self.sent.append(kwargs)
        return SimpleNamespace(sid='SM1')


@pytest.fixture
def sdk():
    return FakeSdk()


@pytest.fixture
def sw_client(sdk):
    config = SignalWireConfig('project', 'token', 'example.signalwire.com',
                              messaging_service_sid='MG1')
    return SignalWireClient(config, client=sdk)


class TestSignalWireConfig:

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            SignalWireConfig('project', None, 'example.signalwire.com')

    def test_from_mapping(self):
        config = SignalWireConfig.from_mapping({
            'SIGNALWIRE_PROJECT_ID': 'p',
            'SIGNALWIRE_AUTH_TOKEN': 't',
            'SIGNALWIRE_SPACE_URL': 's.signalwire.com',
            'SIGNALWIRE_FROM_NUMBER': '+15550000000',
        })

        assert config.from_number == '+15550000000'
        assert config.messaging_service_sid is None


class TestProvisioning:

    def test_search_returns_first_voice_number(self, sw_client, sdk):
        assert sw_client.search_available_number('us') == '+15550001000'
        assert sdk.searches == [('US', {'voice_enabled': True, 'limit': 1})]

    def test_search_empty(self, sw_client, sdk):
        sdk.available = []

        assert sw_client.search_available_number() is None

    def test_search_error(self, sw_client, sdk):
        sdk.search_error = rest_error(500)

        with pytest.raises(ProviderError):
            sw_client.search_available_number()

    def test_purchase_attaches_voice_webhook(self, sw_client, sdk):
        purchased = sw_client.purchase_number('+15550001000', 'https://example.test/voice')

        assert purchased.sid == 'PN1'
        assert sdk.created == [{
            'phone_number': '+15550001000',
            'voice_url': 'https://example.test/voice',
            'voice_method': 'POST',
        }]

    def test_purchase_error(self, sw_client, sdk):
        sdk.create_error = rest_error(400, code=21422)

        with pytest.raises(ProviderPurchaseFailed) as exc_info:
            sw_client.purchase_number('+15550001000', 'https://example.test/voice')

        assert exc_info.value.code == 21422
        assert 'not available for purchase' in str(exc_info.value)

    def test_release(self, sw_client, sdk):
        assert sw_client.release_number('PN1') is True
        assert sdk.deleted == ['PN1']

    def test_release_of_unknown_number_succeeds(self, sw_client, sdk):
        sdk.delete_error = rest_error(404, code=20404)

        assert sw_client.release_number('PN1') is True

    def test_release_error(self, sw_client, sdk):
        sdk.delete_error = rest_error(401, code=20003)

        with pytest.raises(ProviderReleaseFailed):
            sw_client.release_number('PN1')

    def test_find_number_sid(self, sw_client):
        assert sw_client.find_number_sid('+15550007777') == 'PN7'
        assert sw_client.find_number_sid('+15550008888') is None


class TestMessaging:

    def test_send_via_messaging_service(self, sw_client, sdk):
        assert sw_client.send_sms('+447700900123', 'hello') == 'SM1'
        assert sdk.sent == [{'to': '+447700900123', 'body': 'hello', 'messaging_service_sid': 'MG1'}]

    def test_send_via_from_number(self, sdk):
        config = SignalWireConfig('project', 'token', 'example.signalwire.com', from_number='+15550000000')

        SignalWireClient(config, client=sdk).send_sms('+447700900123', 'hello')

        assert sdk.sent[0]['from_'] == '+15550000000'

    def test_send_without_sender(self, sdk):
        config = SignalWireConfig('project', 'token', 'example.signalwire.com')

        with pytest.raises(ConfigurationError):
            SignalWireClient(config, client=sdk).send_sms('+447700900123', 'hello')

    def test_send_error(self, sw_client, sdk):
        sdk.message_error = rest_error(400, code=21610)

        with pytest.raises(ProviderMessageFailed):
            sw_client.send_sms('+447700900123', 'hello')

    def test_missing_signature_is_invalid(self, sw_client):
        assert sw_client.validate_request('https://example.test/voice', {}, '') is False

    def test_send_with_status_callback(self, sw_client, sdk):
        sw_client.send_sms('+447700900123', 'hello', status_callback='https://example.test/api/telephony/sms-status?attemptId=7')

        assert sdk.sent[0]['status_callback'] == 'https://example.test/api/telephony/sms-status?attemptId=7'
