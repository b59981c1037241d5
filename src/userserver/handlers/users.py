"""
=============================================================================
USERS HANDLERS
=============================================================================

GET /users and POST /users.

=============================================================================
GET /users
=============================================================================

    200  Content-Type: application/json
    [{"id":1,"name":"Ahmet"},{"id":2,"name":"Ayşe"}, ...]

=============================================================================
POST /users
=============================================================================

The body has been read in full before the handler runs. What happens next
depends on the server's contract:

    ┌──────────┬──────────────────────────────────────────────────────────┐
    │ form     │ body parsed as urlencoded, whatever Content-Type says    │
    │          │ name = first "name" value, or null when absent           │
    │          │ store.create(name)  →  201 {"id":3,"name":"Fatma"}       │
    ├──────────┼──────────────────────────────────────────────────────────┤
    │ json     │ body decoded by Content-Type:                            │
    │          │   application/json                   → decoded value     │
    │          │   application/x-www-form-urlencoded  → flat field dict   │
    │          │   anything else, or empty            → {}                │
    │          │ store.append(record)  →  200 <record>                    │
    └──────────┴──────────────────────────────────────────────────────────┘

Neither contract ever rejects a body. JSON that does not decode is
logged at WARNING and stored as {}.

=============================================================================
"""

import logging
from typing import Any

from ..config import CONTRACT_FORM, CONTRACT_JSON, CONTRACTS
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, json_response, created
from ..users import UserStore


logger = logging.getLogger(__name__)


class UsersHandler:
    """
    Handlers for the users resource, bound to one store and one contract.

    Usage:
        users = UsersHandler(UserStore(), contract="form")
        router.add_route("/users", users.list_users, method="GET")
        router.add_route("/users", users.create_user, method="POST")
    """

    def __init__(self, store: UserStore, contract: str = CONTRACT_FORM):
        if contract not in CONTRACTS:
            raise ValueError(
                f"Unknown contract {contract!r}, expected one of {', '.join(CONTRACTS)}"
            )
        self.store = store
        self.contract = contract

    def list_users(self, request: HTTPRequest) -> HTTPResponse:
        return json_response(self.store.list())

    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        logger.debug(f"Create request content type: {request.content_type}")

        if self.contract == CONTRACT_JSON:
            return self._create_passthrough(request)
        return self._create_from_form(request)

    # =========================================================================
    # CONTRACTS
    # =========================================================================

    def _create_from_form(self, request: HTTPRequest) -> HTTPResponse:
        fields = request.form_lists
        logger.debug(f"Parsed form fields: {fields}")

        record = self.store.create(request.get_form("name"))

        logger.debug(f"Store size: {len(self.store)}")
        return created(record)

    def _create_passthrough(self, request: HTTPRequest) -> HTTPResponse:
        record = self._decode_body(request)
        logger.debug(f"Parsed body: {record!r}")

        self.store.append(record)

        logger.debug(f"Store size: {len(self.store)}")
        return json_response(record)

    def _decode_body(self, request: HTTPRequest) -> Any:
        """Body as a record, chosen by Content-Type. Never raises."""
        if not request.body.strip():
            return {}

        if request.is_json:
            try:
                return request.json
            except HTTPParseError as e:
                logger.warning(f"Ignoring undecodable JSON body: {e}")
                return {}

        if request.is_form:
            return request.form

        return {}
