"""Shared fixtures: in-memory keyring, scripted executor, showplan builder."""

import re
from typing import Any, Callable, Dict, List, Optional

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from qsinsight.models.session_profile import ConnectionInfo


ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

SHOWPLAN_NS = "http://schemas.microsoft.com/sqlserver/2004/07/showplan"


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps passwords in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.entries: Dict[tuple, str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username)


class FakeExecutor:
    """Executor whose answers come from a responder(database, sql, params)."""

    def __init__(self, responder: Callable[[str, str, Optional[dict]], Any]):
        self.responder = responder
        self.calls: List[tuple] = []
        self.disposed = False

    def execute(self, connection_string, sql, timeout_seconds=300, params=None):
        match = re.search(r"DATABASE=([^;]*)", connection_string)
        database = match.group(1) if match else ""
        self.calls.append((database, sql, timeout_seconds, params))
        result = self.responder(database, sql, params)
        if isinstance(result, Exception):
            raise result
        return result

    def dispose(self):
        self.disposed = True

    def databases_called(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def connection_info():
    return ConnectionInfo(server="sql01", database="master", username="sa", password="S3cret!",
                          driver=ODBC_DRIVER)


def showplan(inner: str = "", query_plan_attrs: str = "", relop_attrs: str = "",
             relop_inner: str = "", namespaced: bool = True) -> str:
    """Minimal Query Store style showplan with hooks for test fragments."""
    xmlns = f' xmlns="{SHOWPLAN_NS}"' if namespaced else ""
    return f"""<ShowPlanXML{xmlns} Version="1.564" Build="16.0.1000.6">
  <BatchSequence>
    <Batch>
      <Statements>
        <StmtSimple StatementText="SELECT * FROM dbo.Orders" StatementId="1" StatementType="SELECT">
          <QueryPlan DegreeOfParallelism="1" CachedPlanSize="16" {query_plan_attrs}>
            {inner}
            <RelOp NodeId="0" PhysicalOp="Clustered Index Scan" LogicalOp="Clustered Index Scan"
                   EstimateRows="100" EstimatedTotalSubtreeCost="0.5" {relop_attrs}>
              {relop_inner}
            </RelOp>
          </QueryPlan>
        </StmtSimple>
      </Statements>
    </Batch>
  </BatchSequence>
</ShowPlanXML>"""


@pytest.fixture
def plan_factory():
    return showplan
