from __future__ import annotations

from types import TracebackType

from accountapi.config import ClientConfig
from accountapi.http.executor import RequestExecutor
from accountapi.http.transport import HttpxTransport, Transport
from accountapi.logging.events import EventBus
from accountapi.runtime.context import Context
from accountapi.runtime.retry import BackoffPolicy
from accountapi.types import AccountData, Envelope

ACCOUNTS_PATH = "/v1/organisation/accounts"


class AccountClient:
    """Create, fetch and delete accounts in the organisation section.

    Every method accepts an optional :class:`Context` used for cancellation and
    deadlines; without one the call may retry for as long as the configured
    attempt budget allows.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: Transport | None = None,
        backoff: BackoffPolicy | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._transport = transport or HttpxTransport()
        self._executor = RequestExecutor(
            config=self.config.api,
            transport=self._transport,
            backoff=backoff or BackoffPolicy(self.config.backoff),
            events=events,
        )

    @property
    def base_url(self) -> str:
        return self.config.api.base_url.rstrip("/")

    def _accounts_url(self, account_id: str | None = None) -> str:
        if account_id is None:
            return f"{self.base_url}{ACCOUNTS_PATH}"
        return f"{self.base_url}{ACCOUNTS_PATH}/{account_id}"

    def create(self, data: AccountData, ctx: Context | None = None) -> AccountData:
        """Create a new bank account or register an existing one."""
        envelope = self._executor.do(
            ctx or Context.background(),
            "POST",
            self._accounts_url(),
            Envelope[AccountData](data=data),
            Envelope[AccountData],
        )
        return envelope.data if envelope is not None else AccountData()

    def fetch(self, account_id: str, ctx: Context | None = None) -> AccountData:
        envelope = self._executor.do(
            ctx or Context.background(),
            "GET",
            self._accounts_url(account_id),
            None,
            Envelope[AccountData],
        )
        return envelope.data if envelope is not None else AccountData()

    def delete(self, account_id: str, version: int, ctx: Context | None = None) -> None:
        """Delete an account given its current version number."""
        self._executor.do(
            ctx or Context.background(),
            "DELETE",
            f"{self._accounts_url(account_id)}?version={version}",
        )

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> AccountClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
