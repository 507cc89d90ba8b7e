"""Settings service shown in Roon's extension settings dialog.

The bridge has nothing to configure; the dialog only explains that every
zone is exposed. Values saved from the dialog are kept and handed back to
the application so they survive restarts.
"""

import logging
from collections.abc import Callable
from typing import Any

from roonmpris.api.client import SETTINGS_SERVICE, RoonClient
from roonmpris.api.protocol import STATUS_SUCCESS, VERB_COMPLETE, VERB_CONTINUE, MooMessage

logger = logging.getLogger(__name__)

LAYOUT_LABEL = "All Roon zones are automatically exposed as MPRIS players."

STATUS_SUBSCRIBED = "Subscribed"
STATUS_UNSUBSCRIBED = "Unsubscribed"
STATUS_CHANGED = "Changed"
STATUS_NOT_VALID = "NotValid"

SettingsSavedHandler = Callable[[dict[str, Any]], None]


def make_layout(values: dict[str, Any]) -> dict[str, Any]:
    """Return the settings layout for the given values."""
    return {
        "values": values,
        "layout": [{"type": "label", "title": LAYOUT_LABEL}],
        "has_error": False,
    }


class SettingsService:
    """Answer settings requests from the core.

    Example:
        service = SettingsService(config.get_settings_values(), on_saved=save)
        service.attach(client)
    """

    def __init__(
        self,
        values: dict[str, Any] | None = None,
        on_saved: SettingsSavedHandler | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            values: Previously saved values.
            on_saved: Called with the new values after a (non dry-run) save.
        """
        self._values: dict[str, Any] = dict(values or {})
        self._on_saved = on_saved
        self._client: RoonClient | None = None
        # subscription_key -> request the updates are sent on
        self._subscribers: dict[str, MooMessage] = {}

    @property
    def values(self) -> dict[str, Any]:
        """Return the current values."""
        return dict(self._values)

    def attach(self, client: RoonClient) -> None:
        """Serve settings requests arriving on `client`."""
        self._client = client
        self._subscribers.clear()
        client.add_service(SETTINGS_SERVICE, self.handle_request)

    async def handle_request(self, message: MooMessage) -> None:
        """Handle one settings request."""
        if self._client is None:
            return
        body = message.body or {}
        method = message.method

        if method == "get_settings":
            await self._client.send(
                message.reply(VERB_COMPLETE, STATUS_SUCCESS, {"settings": make_layout(self._values)})
            )
        elif method == "subscribe_settings":
            self._subscribers[str(body.get("subscription_key", ""))] = message
            await self._client.send(
                message.reply(VERB_CONTINUE, STATUS_SUBSCRIBED, {"settings": make_layout(self._values)})
            )
        elif method == "unsubscribe_settings":
            subscription = self._subscribers.pop(str(body.get("subscription_key", "")), None)
            if subscription is not None:
                await self._client.send(subscription.reply(VERB_COMPLETE, STATUS_UNSUBSCRIBED))
            await self._client.send(message.reply(VERB_COMPLETE, STATUS_UNSUBSCRIBED))
        elif method == "save_settings":
            await self._save(message, body)
        else:
            await self._client.send(
                message.reply(VERB_COMPLETE, "InvalidRequest", {"error": f"unknown method: {method}"})
            )

    async def _save(self, message: MooMessage, body: dict[str, Any]) -> None:
        assert self._client is not None
        settings = body.get("settings")
        values_raw = settings.get("values") if isinstance(settings, dict) else None
        values: dict[str, Any] = dict(values_raw) if isinstance(values_raw, dict) else {}
        layout = make_layout(values)
        status = STATUS_NOT_VALID if layout["has_error"] else STATUS_SUCCESS
        await self._client.send(message.reply(VERB_COMPLETE, status, {"settings": layout}))

        if body.get("is_dry_run") or layout["has_error"]:
            return

        self._values = values
        logger.debug("Settings saved: %s", values)
        for subscription in self._subscribers.values():
            await self._client.send(
                subscription.reply(VERB_CONTINUE, STATUS_CHANGED, {"settings": layout})
            )
        if self._on_saved:
            self._on_saved(dict(values))
