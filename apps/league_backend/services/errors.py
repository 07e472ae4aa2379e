"""
Exceptions raised by the role and signup-code services.

Three families:
  - ValidationError: bad input shape or a reference that doesn't exist.
  - CodeStateError: expected, user-facing outcomes of redeeming a code.
  - PersistenceConflictError: the unit of work lost a race and was rolled
    back. Retryable by the user, never retried by the services.

All of them subclass ValueError so callers that only care about
"the request was bad" can catch one type.
"""


class LeagueAuthError(ValueError):
    """Base class. ``code`` is a stable machine-readable identifier."""

    code = "league_auth_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- Validation ---


class ValidationError(LeagueAuthError):
    code = "validation_error"


class InvalidNameError(ValidationError):
    code = "invalid_name"


class InvalidSeasonYearError(ValidationError):
    code = "invalid_season_year"


class InvalidStatusError(ValidationError):
    code = "invalid_status"


class InvalidRoleError(ValidationError):
    code = "invalid_role"


class InvalidTeamScopeError(ValidationError):
    """Raised when a team does not belong to the league it is paired with."""

    code = "invalid_team_scope"


class InvalidMaxUsesError(ValidationError):
    code = "invalid_max_uses"


class ProfileNotFoundError(ValidationError):
    code = "profile_not_found"


class LeagueNotFoundError(ValidationError):
    code = "league_not_found"


# --- Code state ---


class CodeStateError(LeagueAuthError):
    code = "code_state_error"


class CodeNotFoundError(CodeStateError):
    """Raised when a signup code does not match any record."""

    code = "code_not_found"


class CodeExpiredError(CodeStateError):
    """Raised when a signup code's expiry has passed."""

    code = "code_expired"


class CodeExhaustedError(CodeStateError):
    """Raised when a signup code has no uses left."""

    code = "code_exhausted"


# --- Atomicity ---


class PersistenceConflictError(LeagueAuthError):
    """Raised when a transaction could not commit because of a concurrent write."""

    code = "persistence_conflict"
    retryable = True


class CodeGenerationError(PersistenceConflictError):
    """Raised when no unused token could be generated."""

    code = "code_generation_failed"
