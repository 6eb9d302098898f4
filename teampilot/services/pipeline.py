"""
Per-turn orchestration: one inbound event in, at most one reply out.
"""

from typing import Optional, Tuple
import logging

from .actions import ActionExecutor
from .canned import CannedResponseService, Reply
from .context import ContextAssembler
from .credentials import CredentialService
from .im import IMService, ThreadRef
from .jira import JiraService
from .llm import CompletionClient
from .monitoring import ChannelMonitorService
from .profiles import ProfileService
from .prompts import compose, monitor_instruction
from .router import CannedReply, IntentRouter, StructuredAction
from .salesforce import SalesforceService
from ..config import Config
from ..errors import IntegrationError, TeamPilotError, UpstreamError
from ..models.events import (
    BotEvent, ButtonClickEvent, ChannelMessageEvent, DirectMessageEvent,
    MentionEvent, MessageEventBase, ThreadReplyEvent
)
from ..models.records import ChannelMonitorConfig, ConversationWindow
from ..store import RecordStore

logger = logging.getLogger(__name__)

GREETING = "Hello! How can I help you today?"
GENERIC_ERROR = "Sorry, I encountered an error processing your request. Please try again."
HELP_TEXT = (
    "I'm an AI assistant for your team. Mention me in a channel, message me directly, "
    "or ask me to create Jira tickets and Salesforce records once those integrations are set up."
)


class TurnPipeline:
    """Handles a single BotEvent end to end and delivers the reply."""

    def __init__(
        self,
        config: Config,
        im_service: IMService,
        router: IntentRouter,
        executor: ActionExecutor,
        completion: CompletionClient,
        profiles: ProfileService,
        credentials: CredentialService,
        monitors: ChannelMonitorService
    ):
        self.config = config
        self.im_service = im_service
        self.context = ContextAssembler(im_service)
        self.router = router
        self.executor = executor
        self.completion = completion
        self.profiles = profiles
        self.credentials = credentials
        self.monitors = monitors

    @classmethod
    def from_config(cls, config: Config, records: RecordStore, im_service: IMService) -> "TurnPipeline":
        """Wire every collaborator explicitly from configuration."""
        credentials = CredentialService(records, config.store)
        canned = CannedResponseService(records, config.store)
        return cls(
            config=config,
            im_service=im_service,
            router=IntentRouter(canned, credentials),
            executor=ActionExecutor(credentials, JiraService(), SalesforceService(config.salesforce)),
            completion=CompletionClient(config.llm),
            profiles=ProfileService(records, config.store),
            credentials=credentials,
            monitors=ChannelMonitorService(records, config.store, config.bot.max_channel_monitors)
        )

    async def handle(self, event: BotEvent) -> Optional[Reply]:
        """
        Process one event.

        Every error is converted to a user-visible reply here; nothing raised
        while handling a turn escapes this method.

        Returns:
            The reply that was delivered, or None when the event needs no answer
        """
        if isinstance(event, ButtonClickEvent):
            return await self._handle_button(event)

        monitor = None
        if isinstance(event, (ThreadReplyEvent, ChannelMessageEvent)):
            monitor = await self.monitors.find_enabled_channel(event.team_id, event.channel_id)
            if monitor is None:
                return None

        reply_thread = self._reply_thread(event)
        try:
            if monitor is not None:
                reply = await self._answer_monitored(event, monitor)
            else:
                reply = await self._answer(event)
        except UpstreamError as e:
            logger.error(f"Completion failed for team {event.team_id}: {e}")
            reply = Reply(text=self.completion.get_error_message(e))
        except IntegrationError as e:
            logger.warning(f"{e.system} action failed for team {event.team_id}: {e}")
            reply = Reply(text=e.user_message())
        except TeamPilotError as e:
            logger.error(f"Turn failed for team {event.team_id}: {e}")
            reply = Reply(text=e.user_message())
        except Exception as e:
            logger.error(f"Unexpected error handling {event.kind} event: {e}", exc_info=True)
            reply = Reply(text=GENERIC_ERROR)

        if isinstance(event, MentionEvent) and not event.clean_text:
            reply_thread = event.thread_ts

        await self._deliver(event.channel_id, reply, reply_thread)

        if monitor is not None and monitor.auto_create_ticket:
            await self._maybe_create_ticket(event, monitor)

        return reply

    def _reply_thread(self, event: MessageEventBase) -> Optional[str]:
        if isinstance(event, DirectMessageEvent):
            return event.thread_ts
        return event.thread_ts or event.ts

    def _history_target(self, event: MessageEventBase) -> Tuple[Optional[ThreadRef], int]:
        if event.is_threaded:
            thread = ThreadRef(channel_id=event.channel_id, thread_ts=event.thread_ts, trigger_ts=event.ts)
            return thread, self.config.bot.thread_history_limit
        if isinstance(event, DirectMessageEvent):
            thread = ThreadRef(channel_id=event.channel_id, trigger_ts=event.ts)
            return thread, self.config.bot.dm_history_limit
        return None, 0

    async def _history(self, event: MessageEventBase) -> ConversationWindow:
        thread, limit = self._history_target(event)
        if thread is None:
            return ConversationWindow(cap=0)
        return await self.context.build_context(thread, limit)

    async def _answer(self, event: MessageEventBase) -> Reply:
        text = event.clean_text
        if not text:
            return Reply(text=GREETING)

        history = await self._history(event)
        action = await self.router.route(text, event.team_id, event.user_id, history)

        if isinstance(action, CannedReply):
            return Reply(text=action.text, blocks=action.blocks)

        if isinstance(action, StructuredAction):
            result = await self.executor.execute(action, event.team_id, event.user_id)
            return Reply(text=result.text)

        instruction = await self._system_instruction(event, self.config.bot.base_instruction)
        return Reply(text=await self.completion.complete(instruction, history, text))

    async def _answer_monitored(self, event: MessageEventBase, monitor: ChannelMonitorConfig) -> Reply:
        text = event.clean_text
        history = await self._history(event)
        base = monitor_instruction(self.config.bot.base_instruction, monitor.response_type)
        instruction = await self._system_instruction(event, base)
        logger.info(f"Answering in monitored channel {monitor.channel_name} ({monitor.response_type})")
        return Reply(text=await self.completion.complete(instruction, history, text))

    async def _system_instruction(self, event: MessageEventBase, base_instruction: str) -> str:
        profile = await self.profiles.get_profile(event.team_id, event.user_id)
        integrations = await self.credentials.available_integrations(event.team_id, event.user_id)
        return compose(base_instruction, profile, integrations)

    async def _maybe_create_ticket(self, event: MessageEventBase, monitor: ChannelMonitorConfig) -> None:
        """Create a ticket after the first reply in a monitored thread; failures are reported in the thread."""
        thread_ts = event.thread_ts or event.ts
        try:
            reply = await self._create_thread_ticket(event, monitor, thread_ts)
        except IntegrationError as e:
            logger.warning(f"Auto ticket creation failed in {monitor.channel_name}: {e}")
            reply = Reply(text=e.user_message())
        except TeamPilotError as e:
            logger.error(f"Auto ticket creation failed in {monitor.channel_name}: {e}")
            reply = Reply(text=e.user_message())
        except Exception as e:
            logger.error(f"Unexpected error creating a ticket in {monitor.channel_name}: {e}", exc_info=True)
            reply = Reply(text=GENERIC_ERROR)

        if reply is not None:
            await self._deliver(event.channel_id, reply, thread_ts)

    async def _create_thread_ticket(self, event: MessageEventBase, monitor: ChannelMonitorConfig, thread_ts: str) -> Optional[Reply]:
        count = await self.monitors.increment_thread_response_count(event.team_id, event.channel_id, thread_ts)
        if count != 1:
            return None
        if await self.credentials.get_jira_credential(event.team_id) is None:
            logger.info(f"Auto ticket creation skipped for {monitor.channel_name}: Jira not configured")
            return None

        history = await self._history(event)
        lines = [f"{message.role}: {message.content}" for message in history]
        lines.append(f"user: {event.clean_text}")
        action = StructuredAction(
            system="jira",
            operation="create_ticket",
            params={
                "summary": f"[#{monitor.channel_name}] {event.clean_text[:80] or 'Channel discussion'}",
                "description": "Created from a monitored Slack thread.\n\n" + "\n".join(lines),
                "project": None,
                "issue_type": "Task"
            },
            defaulted=["project"]
        )

        result = await self.executor.execute(action, event.team_id, event.user_id)
        return Reply(text=result.text)

    async def _handle_button(self, event: ButtonClickEvent) -> Optional[Reply]:
        if event.action_id != "help_button":
            logger.debug(f"Ignoring button action {event.action_id}")
            return None

        reply = Reply(text=HELP_TEXT)
        if event.response_url:
            await self.im_service.respond_to_interaction(event.response_url, reply.text)
        elif event.channel_id:
            await self._deliver(event.channel_id, reply, None)
        return reply

    async def close(self) -> None:
        """Release the integration and completion clients."""
        await self.executor.close()
        await self.completion.close()

    async def _deliver(self, channel_id: str, reply: Reply, thread_ts: Optional[str]) -> None:
        try:
            sent = await self.im_service.send_reply(channel_id, reply.text, thread_ts=thread_ts, blocks=reply.blocks)
        except Exception as e:
            logger.error(f"Error delivering reply to {channel_id}: {e}")
            return
        if not sent:
            logger.error(f"Reply to {channel_id} was not delivered")
