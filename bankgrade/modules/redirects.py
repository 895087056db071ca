"""Redirect chain following, the first phase of every target's scan."""

from concurrent.futures import Executor, Future
from dataclasses import dataclass, field, replace
from typing import Callable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests
import urllib3
from requests.cookies import RequestsCookieJar

from ..core.config import Config
from ..core.errors import InvalidStatusError, ScanError, TargetUnreachableError, TooManyRedirectsError
from ..core.logger import get_logger
from ..core.report import ReportAggregator
from ..core.target import Target, TerminalResponse
from .base import BaseModule
from .header_analysis import miscellaneous_headers


# Failures of the connection itself, as opposed to a malformed request
TRANSPORT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


@dataclass(frozen=True)
class HopRequest:
    """One GET of the chain."""
    scheme: str
    host: str
    path: str = "/"
    query: str = ""

    @property
    def url(self) -> str:
        url = f"{self.scheme}://{self.host}{self.path}"
        return f"{url}?{self.query}" if self.query else url

    @property
    def hostname(self) -> str:
        return urlsplit(f"//{self.host}").hostname or self.host

    @property
    def is_secure(self) -> bool:
        return self.scheme == "https"


@dataclass
class ScanContext:
    """Mutable state of one target's chain, discarded once it ends."""
    target: Target
    hops: int = 0
    cookies: RequestsCookieJar = field(default_factory=RequestsCookieJar)
    upgrade_evaluated: bool = False
    relaxed_tls: bool = False


def resolve_location(current: HopRequest, location: Optional[str]) -> HopRequest:
    """
    Work out the request a redirect points to.

    Scheme and host come from ``Location`` when it has them, otherwise they
    are kept. An absolute path is used as is, a missing path becomes "/",
    and a relative path replaces whatever follows the last "/" of the
    current path.
    """
    if not location:
        return HopRequest(current.scheme, current.host, "/")

    parts = urlsplit(location.strip())
    scheme = parts.scheme.lower() or current.scheme
    host = parts.netloc or current.host

    if parts.path.startswith("/"):
        path = parts.path
    elif not parts.path:
        path = "/"
    else:
        path = current.path[: current.path.rfind("/") + 1] + parts.path

    return HopRequest(scheme, host, path, parts.query)


class RedirectChainFollower:
    """
    Follow a target's redirect chain by hand and fan out to the analyzers.

    States: start, requesting, redirecting (back to requesting) and a terminal
    state that is either success (2xx) or fatal (``ScanError``). Each call to
    ``follow`` owns a fresh ``ScanContext``.
    """

    def __init__(
        self,
        config: Config,
        report: ReportAggregator,
        analyzers: Sequence[BaseModule],
        executor: Executor,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.config = config
        self.report = report
        self.analyzers = list(analyzers)
        self.executor = executor
        self.session_factory = session_factory
        self.max_redirects = config.max_redirects
        self.timeout = config.http_timeout
        self.logger = get_logger("module.redirects")
        # Relaxed retries are intentional; the warning would fire on every one
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def follow(self, target: Target) -> List[Future]:
        """
        Scan one target's chain from ``http://<domain>/``.

        Returns:
            Futures of the analyzers started on the terminal response

        Raises:
            ScanError: On a fatal condition for this target
        """
        context = ScanContext(target=target)
        self._record(target, "Upgrade HTTP", False)
        self._record(target, "Secure Redirection Chain", True)
        self._record(target, "Accepts HTTPS", False)

        session = self.session_factory()
        session.headers.update({"User-Agent": self.config.user_agent})
        session.cookies = context.cookies
        try:
            terminal = self._run_chain(session, context)
        finally:
            session.close()

        self.logger.info_with_data(
            f"Chain ended at {terminal.url}",
            {"target": target.name, "hops": context.hops, "status": terminal.status_code},
        )
        return [self.executor.submit(analyzer.run, target, terminal) for analyzer in self.analyzers]

    def _run_chain(self, session: requests.Session, context: ScanContext) -> TerminalResponse:
        request = HopRequest("http", context.target.domain)

        while True:
            request, response = self._fetch(session, context, request)
            self._record_miscellaneous(context.target, response.headers)
            status = response.status_code

            if 300 <= status < 400:
                context.hops += 1
                if context.hops > self.max_redirects:
                    raise TooManyRedirectsError(
                        f"{context.target.domain} exceeded {self.max_redirects} redirects at {request.url}"
                    )
                next_request = resolve_location(request, response.headers.get("Location"))
                self.logger.debug(f"[{status}] {request.url} -> {next_request.url}")
                self._evaluate_hop(context, request, next_request)
                request = next_request
                continue

            if 200 <= status < 300:
                return TerminalResponse(
                    url=request.url,
                    hostname=request.hostname,
                    status_code=status,
                    headers=response.headers,
                    body=response.text,
                )

            raise InvalidStatusError(f"{request.url} answered {status}")

    def _fetch(
        self,
        session: requests.Session,
        context: ScanContext,
        request: HopRequest,
    ) -> Tuple[HopRequest, requests.Response]:
        """
        Issue one request, falling back on transport failures.

        Plain HTTP that cannot connect is retried over HTTPS. HTTPS that
        cannot connect marks the chain insecure and is retried once without
        certificate validation; relaxation then stays on for the rest of the
        chain, and a further failure is fatal. Fallbacks are not hops.

        Any HTTPS response received with certificate validation on means the
        target accepts HTTPS.
        """
        while True:
            try:
                response = session.get(
                    request.url,
                    allow_redirects=False,
                    timeout=self.timeout,
                    verify=not context.relaxed_tls,
                )
                if request.is_secure and not context.relaxed_tls:
                    self._record(context.target, "Accepts HTTPS", True)
                return request, response
            except TRANSPORT_ERRORS as e:
                if not request.is_secure:
                    self.logger.debug(f"{request.url} failed ({e}), retrying over HTTPS")
                    request = replace(request, scheme="https")
                elif not context.relaxed_tls:
                    self.logger.debug(f"{request.url} failed ({e}), retrying without certificate validation")
                    self._record(context.target, "Secure Redirection Chain", False)
                    context.relaxed_tls = True
                else:
                    raise TargetUnreachableError(f"{request.url}: {e}") from e
            except requests.exceptions.RequestException as e:
                raise ScanError(f"{request.url}: {e}") from e

    def _evaluate_hop(self, context: ScanContext, current: HopRequest, next_request: HopRequest) -> None:
        if not context.upgrade_evaluated:
            context.upgrade_evaluated = True
            if not current.is_secure and next_request.is_secure:
                self._record(context.target, "Upgrade HTTP", True)
        elif not next_request.is_secure:
            self._record(context.target, "Secure Redirection Chain", False)

    def _record_miscellaneous(self, target: Target, headers: Mapping[str, str]) -> None:
        for metric, value in miscellaneous_headers(headers).items():
            self._record(target, metric, value, only_if_unset=True)

    def _record(self, target: Target, metric: str, value, only_if_unset: bool = False) -> None:
        self.report.record(target.country_code, target.name, metric, value, only_if_unset=only_if_unset)
