"""
Tassonomia degli errori del core.

Validation / not-found / conflict / policy sono errori "dell'utente": il
chiamante corregge l'input o mostra un messaggio. IntegrityFailure significa
che qualcosa si è rotto: l'operazione è stata annullata per intero.
"""


class SpiralError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class ValidationFailed(SpiralError):
    kind = "validation"
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["field"] = self.field
        return out


class NotFound(SpiralError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, message: str | None = None):
        super().__init__(message or f"{entity.capitalize()} not found")
        self.entity = entity


class Conflict(SpiralError):
    kind = "conflict"
    status_code = 409


class PolicyViolation(SpiralError):
    kind = "policy"
    status_code = 400


class PermissionDenied(PolicyViolation):
    status_code = 403


class AuthenticationFailed(PolicyViolation):
    status_code = 401


class IntegrityFailure(SpiralError):
    kind = "integrity"
    status_code = 500


class MigrationFailed(IntegrityFailure):
    def __init__(self, migration_id: str, message: str):
        super().__init__(f"Migration {migration_id} failed: {message}")
        self.migration_id = migration_id


class IrreversibleMigration(IntegrityFailure):
    def __init__(self, migration_id: str, message: str):
        super().__init__(f"Migration {migration_id} cannot be rolled back automatically. {message}")
        self.migration_id = migration_id
