"""HTTP server using aiohttp: webhook ingress, action callbacks, read API, slash commands."""

from __future__ import annotations

import hmac
from typing import Any, Awaitable, Callable
from uuid import uuid4

from aiohttp import web

from pagerbridge.config import ConfigHolder
from pagerbridge.core.actions import ActionDispatcher, parse_action
from pagerbridge.core.commands import MAX_LIMIT, CommandHandler
from pagerbridge.core.correlator import NotificationCorrelator
from pagerbridge.core.render import render_user_options
from pagerbridge.errors import (
    BridgeError,
    DecodeError,
    IncidentNotFound,
    InvalidAction,
    SignatureError,
)
from pagerbridge.incidents.client import IncidentClient
from pagerbridge.models import ActionRequest
from pagerbridge.transports.base import ChatTransport
from pagerbridge.utils.logging import bind_request, get_logger
from pagerbridge.webhooks.handlers import (
    SIGNATURE_HEADER,
    SignatureStatus,
    check_signature,
    decode_webhook,
)

log = get_logger(__name__)

USER_HEADER = "Mattermost-User-ID"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def _request_context(request: web.Request, handler: Handler) -> web.StreamResponse:
    bind_request(request_id=uuid4().hex[:12], method=request.method, path=request.path)
    return await handler(request)


class BridgeServer:
    """Receives PagerDuty webhooks and Mattermost callbacks."""

    def __init__(
        self,
        config: ConfigHolder,
        correlator: NotificationCorrelator,
        dispatcher: ActionDispatcher,
        client: IncidentClient,
        transport: ChatTransport,
        commands: CommandHandler,
    ) -> None:
        self._config = config
        self._correlator = correlator
        self._dispatcher = dispatcher
        self._client = client
        self._transport = transport
        self._commands = commands
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        settings = self._config.get()
        if not settings.webhook.secret:
            log.warning(
                "webhook_no_secret",
                msg="No webhook secret configured; webhook signatures are not checked.",
            )
        elif not settings.webhook.enforce_signature:
            log.warning(
                "webhook_signature_not_enforced",
                msg="Invalid webhook signatures are logged but accepted.",
            )
        if not settings.chat.callback_token:
            log.warning(
                "callback_no_token",
                msg="No chat.callback_token configured; action callbacks are not authenticated.",
            )
        app = self.build_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, settings.server.bind, settings.server.port)
        await site.start()
        log.info(
            "server_started",
            bind=settings.server.bind,
            port=settings.server.port,
            webhook_path=settings.webhook.path,
        )

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[_request_context])
        path = self._config.get().webhook.path
        path = path if path.startswith("/") else f"/{path}"
        app.router.add_post(path, self._handle_webhook)
        app.router.add_post("/api/v1/incidents/{incident_id}/{action}", self._handle_action)
        app.router.add_get("/api/v1/incidents", self._handle_list_incidents)
        app.router.add_get("/api/v1/incidents/{incident_id}", self._handle_get_incident)
        app.router.add_post("/api/v1/commands", self._handle_command)
        return app

    # ------------------------------------------------------------------
    # Webhook ingress
    # ------------------------------------------------------------------

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        body = await request.read()
        log.debug("webhook_payload", body=body.decode(errors="replace")[:4000])

        try:
            self._verify(request, body)
        except SignatureError as e:
            log.error("webhook_rejected", reason=str(e))
            return web.Response(status=401, text="Invalid signature")

        try:
            events = decode_webhook(body)
        except DecodeError as e:
            log.warning("webhook_decode_failed", error=str(e))
            return web.Response(status=400, text="Invalid JSON payload")

        failed = 0
        for event in events:
            try:
                result = await self._correlator.handle(event)
            except Exception:
                failed += 1
                log.exception(
                    "webhook_event_failed",
                    event_id=event.id,
                    incident_id=event.incident.id,
                    kind=event.kind.value,
                )
                continue
            log.info(
                "webhook_event_processed",
                event_id=event.id,
                incident_id=event.incident.id,
                kind=event.kind.value,
                outcome=result.outcome.value,
            )

        if failed:
            return web.Response(status=500, text="Failed to process event")
        return web.Response(status=200)

    def _verify(self, request: web.Request, body: bytes) -> None:
        settings = self._config.get().webhook
        if not settings.secret:
            return

        status = check_signature(body, settings.secret, request.headers.get(SIGNATURE_HEADER))
        if status is SignatureStatus.VALID:
            return
        if settings.enforce_signature:
            raise SignatureError(f"signature {status.value}")
        log.warning("webhook_signature_invalid", reason=status.value, enforced=False)

    # ------------------------------------------------------------------
    # Action callbacks
    # ------------------------------------------------------------------

    async def _handle_action(self, request: web.Request) -> web.Response:
        incident_id = request.match_info["incident_id"]
        action = request.match_info["action"]

        try:
            parse_action(action)
        except InvalidAction:
            return web.Response(status=400, text="Invalid action")

        try:
            data = await request.json()
        except ValueError:
            return web.Response(status=400, text="Invalid request")
        if not isinstance(data, dict):
            return web.Response(status=400, text="Invalid request")

        fields = _action_fields(data)
        if not _token_matches(self._config.get().chat.callback_token, fields["token"]):
            log.warning("action_token_rejected", incident_id=incident_id, action=action)
            return web.Response(status=401, text="Not authorized")

        user_id = request.headers.get(USER_HEADER) or fields["user_id"]
        if not user_id:
            return web.Response(status=401, text="Not authorized")

        try:
            email = await self._transport.get_user_email(user_id)
        except BridgeError:
            log.exception("action_user_lookup_failed", user_id=user_id)
            return web.Response(status=500, text="Failed to get user")

        action_request = ActionRequest(
            incident_id=incident_id,
            action=action,
            user_id=user_id,
            user_email=email,
            assignee_id=fields["assignee_id"],
        )
        try:
            result = await self._dispatcher.dispatch(action_request)
        except InvalidAction as e:
            return web.Response(status=400, text=str(e))
        except BridgeError:
            log.exception("action_failed", incident_id=incident_id, action=action)
            return web.Response(status=502, text=f"Failed to {action} incident")

        if result.incident is None:
            chat = self._config.get().chat
            return web.json_response(
                render_user_options(
                    result.users, incident_id, chat.callback_base_url, chat.callback_token
                )
            )
        return web.json_response(result.to_response())

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    async def _handle_list_incidents(self, request: web.Request) -> web.Response:
        if not self._read_authorized(request):
            return web.Response(status=401, text="Not authorized")

        params: dict[str, Any] = {key: request.query.getall(key) for key in request.query}
        try:
            limit = int(request.query.get("limit", MAX_LIMIT))
        except ValueError:
            return web.Response(status=400, text="Invalid limit")
        params["limit"] = str(max(1, min(limit, MAX_LIMIT)))

        try:
            incidents = await self._client.list(params)
        except BridgeError as e:
            log.exception("list_incidents_failed")
            return web.Response(status=502, text=f"Failed to list incidents: {e}")

        return web.json_response({"incidents": [i.model_dump(mode="json") for i in incidents]})

    async def _handle_get_incident(self, request: web.Request) -> web.Response:
        if not self._read_authorized(request):
            return web.Response(status=401, text="Not authorized")

        incident_id = request.match_info["incident_id"]
        try:
            incident = await self._client.get(incident_id)
        except IncidentNotFound:
            return web.Response(status=404, text="Incident not found")
        except BridgeError as e:
            log.exception("get_incident_failed", incident_id=incident_id)
            return web.Response(status=502, text=f"Failed to get incident: {e}")

        return web.json_response(incident.model_dump(mode="json"))

    def _read_authorized(self, request: web.Request) -> bool:
        token = self._config.get().chat.callback_token
        if not token:
            return bool(request.headers.get(USER_HEADER))
        scheme, _, provided = request.headers.get("Authorization", "").partition(" ")
        return scheme.lower() == "bearer" and _token_matches(token, provided)

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    async def _handle_command(self, request: web.Request) -> web.Response:
        form = await request.post()
        token = self._config.get().commands.token
        if not _token_matches(token, str(form.get("token", ""))):
            return web.Response(status=401, text="Invalid command token")

        text = f"{form.get('command', '')} {form.get('text', '')}"
        response = await self._commands.handle(text)
        return web.json_response(response.to_dict())


def _action_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Pull action fields from either body shape.

    Plain callers send ``{incident_id, action, user_id, assignee_id}``.
    Mattermost interactive messages send ``{user_id, context}``, and a select
    puts the chosen value in ``context.selected_option``. The callback token
    rides in ``context.token`` (or a top-level ``token`` for plain callers).
    """
    context = data.get("context") or {}
    if not isinstance(context, dict):
        context = {}
    assignee = (
        data.get("assignee_id")
        or context.get("assignee_id")
        or context.get("selected_option")
        or None
    )
    return {
        "user_id": str(data.get("user_id") or ""),
        "assignee_id": str(assignee) if assignee else None,
        "token": str(context.get("token") or data.get("token") or ""),
    }


def _token_matches(expected: str, provided: str) -> bool:
    """True when no token is configured or ``provided`` equals it."""
    if not expected:
        return True
    return hmac.compare_digest(expected.encode(), provided.encode())
