class GatewayDemoException(Exception):
    pass


class AuthenticationError(GatewayDemoException):
    """Credentials could not be resolved or were rejected by the control plane."""


class ProvisioningError(GatewayDemoException):
    """Creating or updating the gateway was rejected."""


class CleanupError(GatewayDemoException):
    pass


class NoResourceError(GatewayDemoException):
    # Informational: there was nothing to delete
    pass
