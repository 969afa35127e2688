"""
Session profile model for remembered SQL Server connections
"""

from typing import Optional, List
from dataclasses import dataclass, field, replace

from pydantic import BaseModel, Field, field_validator

from qsinsight.core.constants import ADMIN_DATABASE, DEFAULT_CONNECTION_TIMEOUT, APP_NAME
from qsinsight.core.exceptions import ConnectionError


@dataclass
class SessionProfile:
    """
    Named connection profile

    `secret` is an opaque handle into the OS credential store, never the
    password itself.
    """

    name: str = ""
    server: str = ""
    username: str = ""
    secret: str = ""

    @property
    def uses_windows_auth(self) -> bool:
        return not self.username

    def to_connection_info(
        self,
        password: Optional[str] = None,
        database: str = ADMIN_DATABASE,
        **options,
    ) -> 'ConnectionInfo':
        """Build executor connection details for this profile"""
        return ConnectionInfo(
            server=self.server,
            database=database,
            username=self.username,
            password=password or "",
            **options,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary (for JSON serialization)"""
        return {
            'name': self.name,
            'server': self.server,
            'username': self.username,
            'secret': self.secret,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SessionProfile':
        """Create from dictionary"""
        validated = SessionProfileValidator(**data)
        return cls(
            name=validated.name,
            server=validated.server,
            username=validated.username,
            secret=validated.secret,
        )


@dataclass
class SessionStore:
    """Ordered profiles plus a by-name reference to the current one"""

    sessions: List[SessionProfile] = field(default_factory=list)
    current_session_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.sessions)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.sessions]

    @property
    def current(self) -> Optional[SessionProfile]:
        if not self.current_session_name:
            return None
        for profile in self.sessions:
            if profile.name == self.current_session_name:
                return profile
        return None

    def to_dict(self) -> dict:
        return {
            'lastSessionName': self.current_session_name,
            'sessions': [s.to_dict() for s in self.sessions],
        }


class SessionProfileValidator(BaseModel):
    """Pydantic validator for persisted session entries"""

    name: str = Field(min_length=1, max_length=128)
    server: str = Field(min_length=1, max_length=255)
    username: str = Field(default="", max_length=128)
    secret: str = Field(default="")

    @field_validator('server')
    @classmethod
    def validate_server(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Server name is required")
        return v

    @field_validator('username', 'secret', mode='before')
    @classmethod
    def none_to_blank(cls, v):
        return "" if v is None else v


@dataclass
class ConnectionInfo:
    """Everything the executor needs to reach one database"""

    server: str = ""
    database: str = ADMIN_DATABASE
    username: str = ""
    password: str = field(default="", repr=False)
    driver: Optional[str] = None
    port: Optional[int] = None
    encrypt: bool = True
    trust_server_certificate: bool = False
    connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT
    application_name: str = APP_NAME

    def for_database(self, database: str) -> 'ConnectionInfo':
        """Same server and credentials, different database"""
        return replace(self, database=database)

    @property
    def server_value(self) -> str:
        if self.port and "\\" not in self.server and "," not in self.server:
            return f"{self.server},{self.port}"
        return self.server

    def _parts(self, password: str) -> List[str]:
        if not self.driver:
            raise ConnectionError("No ODBC driver selected", server=self.server, database=self.database)

        parts = [
            f"DRIVER={{{self.driver}}}",
            f"SERVER={self.server_value}",
            f"DATABASE={self.database}",
            f"APP={{{self.application_name}}}",
            f"Connect Timeout={self.connection_timeout}",
        ]

        if self.username:
            parts.append(f"UID={self.username}")
            parts.append(f"PWD={{{password}}}")
        else:
            parts.append("Trusted_Connection=yes")

        if self.encrypt:
            parts.append("Encrypt=yes")

        if self.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")

        return parts

    @property
    def connection_string(self) -> str:
        """ODBC connection string including the password"""
        return ";".join(self._parts(self.password.replace("}", "}}")))

    @property
    def redacted_connection_string(self) -> str:
        """Connection string safe for logs"""
        return ";".join(self._parts("***"))
