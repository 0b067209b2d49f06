"""Scroll the conversation until every lazily loaded turn is rendered."""

import time

from .config import RetryPolicy
from .errors import ContainerNotFound
from .log import log_debug, log_warn
from .surface import ChatSurface


class ScrollLoader:
    """Repeatedly scroll to the top of the history until it stops changing.

    The loop ends once ``policy.stability_threshold`` consecutive passes saw
    the same turn count and either the same scroll offset or an offset of
    zero. ``policy.max_attempts`` is a soft cap: whatever has loaded by then
    is exported.
    """

    def __init__(self, surface: ChatSurface, policy: RetryPolicy, sleep=time.sleep):
        self._surface = surface
        self._policy = policy
        self._sleep = sleep

    def load(self):
        container = self._surface.scroll_container()
        if container is None:
            raise ContainerNotFound()

        stable = 0
        attempts = 0
        last_offset = None
        while stable < self._policy.stability_threshold and attempts < self._policy.max_attempts:
            before = self._surface.turn_count()
            self._surface.scroll_to_origin(container)
            self._sleep(self._policy.delay)

            offset = self._surface.scroll_offset(container)
            after = self._surface.turn_count()
            if after == before and (offset == last_offset or offset == 0):
                stable += 1
            else:
                stable = 0
            last_offset = offset
            attempts += 1
            log_debug(f"Scroll pass {attempts}: {after} turns, offset {offset}, stable {stable}")

        if stable < self._policy.stability_threshold:
            log_warn(f"History did not settle after {attempts} scroll attempts; exporting what is loaded")
