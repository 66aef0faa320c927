"""Event hooks for notifying external tools about sync runs."""

import json
import logging
import os
import subprocess
from typing import Any, Callable, Dict, List

import requests

logger = logging.getLogger(__name__)

HOOK_EVENTS = ("command_start", "command_end", "sync_complete", "sync_error")


class HookManager:
    """Manages event hooks for CLI notifications."""

    def __init__(self):
        self._hooks: Dict[str, List[Callable]] = {}

    def register(self, event: str, callback: Callable):
        """
        Register a callback for an event.

        Args:
            event: Event name (e.g., 'sync_complete', 'sync_error')
            callback: Function called with the event payload as keyword arguments
        """
        if event not in HOOK_EVENTS:
            logger.warning(f"Registering hook for unknown event: {event}")
        self._hooks.setdefault(event, []).append(callback)
        logger.debug(f"Registered hook for event: {event}")

    def trigger(self, event: str, **payload: Any):
        """
        Call every callback registered for an event.

        A failing callback is logged and does not affect the others.

        Args:
            event: Event name
            **payload: JSON-serializable event data
        """
        callbacks = self._hooks.get(event)
        if not callbacks:
            return

        logger.debug(f"Triggering event: {event}")
        for callback in callbacks:
            try:
                callback(event=event, **payload)
            except Exception as e:
                logger.error(f"Hook callback failed for {event}: {e}")

    def load_from_config(self, config):
        """
        Load hooks from configuration.

        Expected config format:
        hooks:
          sync_complete:
            - type: command
              command: "notify-send 'Sync complete'"
            - type: webhook
              url: "https://..."
          sync_error:
            - type: command
              command: "notify-send 'Sync failed'"

        Args:
            config: Config object
        """
        hooks_config = config.get("hooks") or {}

        for event, hook_configs in hooks_config.items():
            if not isinstance(hook_configs, list):
                logger.warning(f"Ignoring hooks for {event}: expected a list")
                continue

            for hook_config in hook_configs:
                hook_type = hook_config.get("type")

                if hook_type == "command" and hook_config.get("command"):
                    self.register(event, self._create_command_hook(hook_config["command"]))
                elif hook_type == "webhook" and hook_config.get("url"):
                    self.register(event, self._create_webhook_hook(hook_config["url"]))
                else:
                    logger.warning(f"Ignoring invalid hook for {event}: {hook_config}")

    def _create_command_hook(self, command: str) -> Callable:
        """Create a hook running a shell command, with the payload in its environment."""
        def hook(event: str, **payload):
            env = dict(os.environ)
            env["SYNCARR_EVENT"] = event
            env["SYNCARR_PAYLOAD"] = json.dumps(payload, default=str)
            result = subprocess.run(command, shell=True, check=False, capture_output=True, env=env)
            if result.returncode != 0:
                logger.warning(f"Hook command exited with {result.returncode}: {command}")
            else:
                logger.debug(f"Executed hook command: {command}")
        return hook

    def _create_webhook_hook(self, url: str) -> Callable:
        """Create a hook POSTing the payload as JSON."""
        def hook(event: str, **payload):
            body = json.loads(json.dumps({"event": event, **payload}, default=str))
            try:
                requests.post(url, json=body, timeout=5)
                logger.debug(f"Sent webhook to: {url}")
            except requests.RequestException as e:
                logger.error(f"Failed to send webhook to {url}: {e}")
        return hook


# Global hook manager instance
_hook_manager = HookManager()


def get_hook_manager() -> HookManager:
    """Get the global hook manager instance."""
    return _hook_manager


def trigger_hook(event: str, **payload):
    """Convenience function to trigger a hook."""
    _hook_manager.trigger(event, **payload)
