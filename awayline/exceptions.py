class AwaylineError(Exception):
    """Base exception for the service"""
    pass


class ConfigurationError(AwaylineError):
    """Missing or invalid credentials, secrets or webhook URLs"""
    pass


class ValidationError(AwaylineError):
    """Malformed webhook signature or payload"""
    pass


# =============================================================================
# TELEPHONY PROVIDER ERRORS
# =============================================================================

class ProviderError(AwaylineError):
    """Base exception for telephony provider calls"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class NoNumbersAvailable(ProviderError):
    """The provider returned no purchasable number"""
    pass


class ProviderPurchaseFailed(ProviderError):
    """Purchasing a phone number failed"""
    pass


class ProviderReleaseFailed(ProviderError):
    """Releasing a phone number failed"""
    pass


class ProviderMessageFailed(ProviderError):
    """Sending an SMS failed"""
    pass


# =============================================================================
# LEDGER ERRORS
# =============================================================================

class LedgerError(AwaylineError):
    """Base exception for database writes"""
    pass


class LedgerWriteFailed(LedgerError):
    """Inserting a number binding failed"""
    pass


class LedgerUpdateFailed(LedgerError):
    """Updating an existing number binding failed"""
    pass


class LockAcquisitionFailed(LedgerError):
    """The per-user advisory lock could not be taken"""
    pass


class PaymentProviderError(AwaylineError):
    """A Stripe API call failed"""
    pass


# =============================================================================
# LEAVE-A-MESSAGE ERRORS
# =============================================================================

class LeaveLinkInvalid(ValidationError):
    """A leave-a-message token that cannot be used"""

    def __init__(self, message, reason):
        super().__init__(message)
        self.reason = reason
