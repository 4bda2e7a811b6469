from enum import StrEnum


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AuthProvider(StrEnum):
    MATTERMOST = "mattermost"
