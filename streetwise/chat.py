"""
Buddy Chat - per-report chat panel

Selecting a report centers the map on it and opens the panel; history is
loaded once immediately and then re-fetched in full every few seconds until
the panel closes.
"""

from typing import List, Optional

from streetwise.api_client import StreetwiseAPIClient
from streetwise.config import StreetwiseConfig
from streetwise.exceptions import StreetwiseError, ValidationError
from streetwise.logging_config import logger, set_report_id
from streetwise.map_surface import MapSurface
from streetwise.models import ChatMessage, SecurityReport
from streetwise.pollers import Poller, ViewScope
from streetwise.state_machine import ChatStateMachine


class BuddyChatSession:
    """Chat state for the selected security report"""

    def __init__(
        self,
        api: StreetwiseAPIClient,
        map_surface: MapSurface,
        scope: ViewScope,
        config: StreetwiseConfig,
    ):
        self.api = api
        self.map = map_surface
        self.scope = scope
        self.config = config
        self.machine = ChatStateMachine()

        self.report: Optional[SecurityReport] = None
        self.messages: List[ChatMessage] = []
        self.draft: str = ""
        self._poller: Optional[Poller[List[ChatMessage]]] = None

    @property
    def is_open(self) -> bool:
        return self.machine.is_open

    async def open(self, report: SecurityReport) -> None:
        """Focus the map on the report, load its history and start polling"""
        if self.is_open:
            await self.close()

        coordinate = report.coordinate
        if coordinate is not None:
            self.map.fly_to(coordinate)

        self.report = report
        self.messages = []
        set_report_id(report.id)
        self.machine.open(report.id)

        report_id = report.id
        poller = Poller(
            f"chat:{report_id}",
            self.config.chat_poll_interval,
            lambda: self.api.list_messages(report_id),
            lambda messages: self._apply_messages(report_id, messages),
            self.scope,
            drop_stale=self.config.drop_stale_responses,
        )
        self._poller = poller
        await poller.refresh_now()
        # Closed or switched while the history was loading
        if self._poller is poller:
            poller.start(immediate=False)

    def _apply_messages(self, report_id, messages: List[ChatMessage]) -> None:
        if not self.is_open or self.report is None or self.report.id != report_id:
            return
        self.messages = messages

    async def send(self, text: Optional[str] = None) -> bool:
        """
        Post the draft (or `text`) to the open report.

        Returns:
            False when there is nothing to send

        Raises:
            StreetwiseError: the request failed; the draft is kept for retry
        """
        if text is not None:
            self.draft = text
        if not self.draft.strip():
            return False
        if not self.is_open or self.report is None:
            raise ValidationError("No report selected", field="report")

        try:
            await self.api.send_message(self.report.id, self.draft)
        except StreetwiseError as e:
            logger.warning(f"Failed to send chat message for report {self.report.id}: {e}")
            raise

        self.draft = ""
        if self._poller is not None:
            await self._poller.refresh_now()
        return True

    async def close(self) -> None:
        """Stop polling and forget the conversation"""
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

        if self.is_open:
            self.machine.close()

        self.report = None
        self.messages = []
        self.draft = ""
        set_report_id(None)
