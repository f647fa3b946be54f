class MedqueueError(Exception):
    """Profile or role-data failure. Caught and logged inside the service layer."""

    def __init__(self, reason: str, details: dict = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


class MissingEmail(MedqueueError):
    def __init__(self, user_id: str = None):
        super().__init__("identity has no primary email address", {"user_id": user_id})


class LookupFailure(MedqueueError):
    pass


class ProfileNotFound(MedqueueError):
    def __init__(self, email: str):
        super().__init__(f"no profile for {email}", {"email": email})


class RoleUnmapped(MedqueueError):
    def __init__(self, role):
        self.role = role
        super().__init__(f"no role data table for role {role!r}", {"role": role})


class WriteFailure(MedqueueError):
    pass


class WebhookError(Exception):
    """Identity-provider webhook failure, rendered as {"error": message}."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class NoEmailProvided(WebhookError):
    status_code = 400
    message = "No email address provided"


class NoPrimaryEmail(WebhookError):
    status_code = 400
    message = "No primary email found"


class DatabaseQueryError(WebhookError):
    message = "Database query error"


class DatabaseInsertionError(WebhookError):
    message = "Database insertion error"


class InternalError(WebhookError):
    pass
